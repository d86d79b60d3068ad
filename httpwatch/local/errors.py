"""Exceptions raised by the HttpWatch supervisor."""


class ConfigurationError(ValueError):
    """A required configuration value is missing or unusable."""


class StartError(RuntimeError):
    """The process for a managed application could not be spawned."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"Failed to start process for {name}: {message}")
        self.name = name
