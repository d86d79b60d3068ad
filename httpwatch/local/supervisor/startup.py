import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from httpwatch.local.errors import ConfigurationError
from httpwatch.local.supervisor.application import ManagedApplication
from httpwatch.local.supervisor.recipe import LaunchRecipe, RecipeKind, dev_server_recipe, interpreter_recipe

if TYPE_CHECKING:
    from httpwatch.local.config import MergedSettings

log = logging.getLogger(__name__)


def _get(section: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Looks up a section key case-insensitively, treating empty strings as absent."""
    for candidate, value in section.items():
        if candidate.lower() == key.lower():
            return default if value is None or value == "" else value
    return default


def _require(section: Dict[str, Any], key: str, name: str) -> str:
    value = _get(section, key)
    if value is None:
        raise ConfigurationError(f"{key} is not configured for {name}.")
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 't', 'yes', 'y')


def _as_port(value: Any, default: int, name: str) -> int:
    """Parses a port, falling back to `default` when the value is absent or unusable."""
    if value is None:
        return default
    try:
        port = int(value)
    except (TypeError, ValueError):
        port = -1
    if not 0 < port < 65536:
        log.warning(f"Invalid TargetPort '{value}' for {name}. Using default port {default}.")
        return default
    return port


def _as_seconds(value: Any, default: float, name: str) -> float:
    if value is None:
        return default
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        seconds = 0.0
    if seconds <= 0:
        log.warning(f"Invalid ProbeTimeoutSeconds '{value}' for {name}. Using {default}s.")
        return default
    return seconds


def _build_recipe(kind: RecipeKind, name: str, section: Dict[str, Any], host: str, port: int, config: "MergedSettings") -> LaunchRecipe:
    if kind is RecipeKind.DEV_SERVER:
        return dev_server_recipe(
            working_directory=Path(_require(section, "ProjectDirectory", name)),
            command=str(_get(section, "Command", config.DEV_SERVER_DEFAULT_COMMAND)),
            arguments=str(_get(section, "Arguments", config.DEV_SERVER_DEFAULT_ARGUMENTS)),
        )
    return interpreter_recipe(
        working_directory=Path(_require(section, "PythonServerDirectory", name)),
        interpreter=_require(section, "PythonServerScript", name),
        host=host,
        port=port,
        module=str(_get(section, "Module", config.INTERPRETER_DEFAULT_MODULE)),
    )


def build_application(name: str, kind: RecipeKind, section: Dict[str, Any], config: "MergedSettings") -> ManagedApplication:
    """
    Builds one managed application from its configuration section.

    :param name: The section name, which also becomes the application name.
    :param kind: Which launch recipe the section describes.
    :param section: The section's key/value pairs.
    :param config: The merged settings, for defaults and timings.
    :raises ConfigurationError: If a required key is missing.
    """
    if kind is RecipeKind.DEV_SERVER:
        default_port, default_timeout = config.DEV_SERVER_DEFAULT_PORT, config.DEV_SERVER_PROBE_TIMEOUT
    else:
        default_port, default_timeout = config.INTERPRETER_DEFAULT_PORT, config.INTERPRETER_PROBE_TIMEOUT

    host = str(_get(section, "TargetIp", config.DEFAULT_TARGET_IP))
    port = _as_port(_get(section, "TargetPort"), default_port, name)
    recipe = _build_recipe(kind, name, section, host, port, config)

    return ManagedApplication(
        name=name,
        host=host,
        port=port,
        recipe=recipe,
        probe_timeout=_as_seconds(_get(section, "ProbeTimeoutSeconds"), default_timeout, name),
        stop_timeout=config.STOP_TIMEOUT_SECONDS,
        kill_grace=config.KILL_GRACE_SECONDS,
    )


def _resolve_kind(name: str, section: Dict[str, Any], config: "MergedSettings") -> RecipeKind:
    declared: Optional[str] = _get(section, "Type", config.BUILTIN_APPLICATIONS.get(name))
    try:
        return RecipeKind(str(declared).lower())
    except ValueError:
        valid = ", ".join(k.value for k in RecipeKind)
        raise ConfigurationError(f"Unknown Type '{declared}' for {name}. Expected one of: {valid}.") from None


def build_applications(config: "MergedSettings") -> List[ManagedApplication]:
    """
    Builds every enabled application described by the configuration.

    Applications are enabled unless their section sets `Enabled` to false.

    :param config: The merged settings.
    :return: The applications to supervise, in configuration order.
    :raises ConfigurationError: If an enabled application is misconfigured.
    """
    applications: List[ManagedApplication] = []
    for name in config.application_sections():
        section = config.section(name)
        if not _as_bool(_get(section, "Enabled", True)):
            log.info(f"{name} is disabled in configuration. Skipping.")
            continue

        app = build_application(name, _resolve_kind(name, section, config), section, config)
        log.info(f"Registered {name} ({app.recipe.kind.value}) at {app.url}")
        applications.append(app)
    return applications
