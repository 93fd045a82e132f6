"""Configuration loading and saving service.

Handles loading config.yaml from the branchwatch config directory and
updating individual settings from the command line.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from branchwatch.models.config import AppConfig

logger = logging.getLogger(__name__)

APP_DIR_NAME = "gclaude"

# Keys accepted by set_value, mapped to (section, field)
SETTABLE_KEYS: dict[str, tuple[str, str]] = {
    "notification.desktop": ("notification", "desktop"),
    "notification.sound": ("notification", "sound"),
    "notification.sound_file": ("notification", "sound_file"),
    "monitor.poll_interval_ms": ("monitor", "poll_interval_ms"),
    "monitor.idle_threshold_s": ("monitor", "idle_threshold_s"),
    "monitor.debounce_secs": ("monitor", "debounce_secs"),
}


def get_config_dir() -> Path:
    """Return the config directory, honouring XDG_CONFIG_HOME."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return Path.home() / ".config" / APP_DIR_NAME


class ConfigService:
    """Service for loading and managing application configuration.

    Handles:
    - Loading config from config.yaml
    - Validating against Pydantic schema
    - Saving updated config
    - Setting single values by dotted key
    """

    def __init__(self, config_path: str | Path | None = None):
        """Initialize the config service.

        Args:
            config_path: Path to the config file. Defaults to
                <config dir>/config.yaml.
        """
        self.config_path = Path(config_path) if config_path else get_config_dir() / "config.yaml"
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """Load and validate configuration.

        Returns:
            Validated AppConfig instance. Defaults are used when the file is
            missing, unreadable, or invalid.
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            self._config = AppConfig()
            return self._config

        try:
            with open(self.config_path) as f:
                raw_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Error reading config file: {e}, using defaults")
            self._config = AppConfig()
            return self._config

        if not isinstance(raw_config, dict):
            logger.warning(f"Config file {self.config_path} is not a mapping, using defaults")
            self._config = AppConfig()
            return self._config

        try:
            self._config = AppConfig(**raw_config)
        except ValidationError as e:
            logger.warning(f"Config validation error: {e}, using defaults")
            self._config = AppConfig()

        return self._config

    def get_config(self) -> AppConfig:
        """Get the current configuration.

        Loads from disk if not already loaded.
        """
        if self._config is None:
            return self.load()
        return self._config

    def reload(self) -> AppConfig:
        """Force reload configuration from disk."""
        self._config = None
        return self.load()

    def save(self, config: AppConfig | None = None) -> None:
        """Save configuration to disk.

        Args:
            config: Config to save. Uses current config if not provided.

        Raises:
            OSError: If the file could not be written.
        """
        config = config or self.get_config()
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        config_dict = config.model_dump(mode="json")
        with open(self.config_path, "w") as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
        self._config = config

    def set_value(self, key: str, value: str) -> AppConfig:
        """Set one dotted config key from its string form and save.

        Args:
            key: Dotted key, e.g. "notification.sound".
            value: String value; booleans accept "true"/"false".

        Returns:
            The updated config.

        Raises:
            KeyError: If key is not a known setting.
            ValueError: If value does not validate.
        """
        if key not in SETTABLE_KEYS:
            raise KeyError(f"unknown config key: {key}")
        section, field = SETTABLE_KEYS[key]

        data = self.get_config().model_dump(mode="json")
        data[section][field] = _coerce(value)
        try:
            config = AppConfig(**data)
        except ValidationError as e:
            raise ValueError(f"invalid value for {key}: {value!r}") from e

        self.save(config)
        return config

    def as_flat_dict(self) -> dict[str, Any]:
        """Return the settable keys with their current values."""
        data = self.get_config().model_dump(mode="json")
        return {key: data[section][field] for key, (section, field) in SETTABLE_KEYS.items()}


def _coerce(value: str) -> Any:
    """Turn CLI strings into YAML-ish scalars ("true" -> True, "" -> None)."""
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    if lowered in ("", "none", "null"):
        return None
    return value
