import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import httpwatch.settings as default_settings
from httpwatch.local.errors import ConfigurationError

log = logging.getLogger(__name__)


class MergedSettings:
    """
    Merges the default settings with the appsettings JSON files and the environment.

    This class provides a unified, attribute-based access point for all
    configuration. It follows a clear precedence:
    1. Base values from `settings.py` (which already honors `.env`).
    2. `appsettings.json`, then `appsettings.Local.json` next to it.
    3. `<Section>__<Key>` environment variables for application sections.

    Top-level JSON keys listed in `MODIFIABLE_SETTINGS` override the matching
    default; top-level JSON objects are kept as application sections.
    """

    def __init__(
        self,
        appsettings_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        strict: bool = True,
    ) -> None:
        """
        Initializes the settings object by loading defaults and overrides.

        :param appsettings_path: The main JSON settings file. Defaults to `APPSETTINGS_PATH`.
        :param environ: The environment to read section overrides from. Defaults to `os.environ`.
        :param strict: If True, an unreadable settings file raises ConfigurationError;
            otherwise the error is logged and the file is skipped.
        :raises ConfigurationError: In strict mode, if a settings file is malformed.
        """
        self.strict = strict
        self.sections: Dict[str, Dict[str, Any]] = {}
        self._load_defaults()

        self.APPSETTINGS_PATH = Path(appsettings_path) if appsettings_path else default_settings.APPSETTINGS_PATH
        for path in (self.APPSETTINGS_PATH, self.APPSETTINGS_PATH.with_name(self.APPSETTINGS_LOCAL_NAME)):
            self._load_file(path)
        self._load_environment(os.environ if environ is None else environ)

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from the settings.py module as defaults."""
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _load_file(self, path: Path) -> None:
        """Applies one JSON settings file. A missing file is skipped."""
        if not path.exists():
            return

        try:
            with path.open('r', encoding='utf-8') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            self._reject(f"Failed to load or parse settings file '{path}': {e}")
            return

        if not isinstance(overrides, dict):
            self._reject(f"Settings file '{path}' must contain a JSON object.")
            return

        log.info(f"Loading configuration from {path}")
        for key, value in overrides.items():
            if isinstance(value, dict):
                self.sections.setdefault(key, {}).update(value)
            elif key in self.MODIFIABLE_SETTINGS:
                self._apply_override(self.MODIFIABLE_SETTINGS[key], value)
            else:
                log.warning(f"Unknown setting '{key}' in {path.name}. Ignoring.")

    def _reject(self, message: str) -> None:
        if self.strict:
            raise ConfigurationError(message)
        log.error(f"{message} Ignoring it.")

    def _apply_override(self, attribute: str, value: Any) -> None:
        """Coerces the new value to the type of the default and stores it."""
        original_value = getattr(self, attribute)
        try:
            if isinstance(original_value, Path):
                value = Path(value)
            elif original_value is not None:
                value = type(original_value)(value)
        except (ValueError, TypeError) as e:
            log.error(f"Could not convert value '{value}' for '{attribute}'. Keeping {original_value}. Error: {e}")
            return
        setattr(self, attribute, value)
        log.debug(f"Overridden setting: {attribute} = {value}")

    def _load_environment(self, environ: Mapping[str, str]) -> None:
        """Applies `Section__Key=value` variables on top of the JSON sections."""
        # Windows upper-cases environment names, so sections match case-insensitively.
        known = {name.lower(): name for name in (*self.BUILTIN_APPLICATIONS, *self.sections)}
        for name, value in environ.items():
            section, sep, key = name.partition("__")
            if not sep or not key or "__" in key:
                continue
            if section.lower() in known:
                self.sections.setdefault(known[section.lower()], {})[key] = value

    def section(self, name: str) -> Dict[str, Any]:
        """Returns a copy of the named section, empty if it is not configured."""
        return dict(self.sections.get(name, {}))

    def application_sections(self) -> Iterable[str]:
        """
        Yields the names of all sections that describe a managed application.

        These are the built-in sections plus any other section that declares a `Type`.
        """
        yield from self.BUILTIN_APPLICATIONS
        for name, values in self.sections.items():
            if name not in self.BUILTIN_APPLICATIONS and "Type" in values:
                yield name


# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings(strict=False)
