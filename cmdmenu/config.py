#!/usr/bin/env python3
"""
cmdmenu Configuration Management
Loads, validates and persists the user's menu preferences
"""

import copy
import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .exceptions import ConfigurationError, PersistenceError
from .logger import data_home, logger
from .utils import atomic_write_json


CONFIG_VERSION = "1.0"

VALID_THEMES = ("default", "dark", "light", "high-contrast")
VALID_SPEEDS = ("slow", "normal", "fast")
BOOLEAN_FIELDS = ("animationsEnabled", "iconsEnabled", "showDescriptions", "showPreviews")
HISTORY_SIZE_RANGE = (1, 1000)


@dataclass
class UserPreferences:
    """Typed view of the persisted ``preferences`` object"""
    theme: str = "default"
    animations_enabled: bool = True
    animation_speed: str = "normal"
    icons_enabled: bool = True
    show_descriptions: bool = True
    show_previews: bool = True
    history_size: int = 50
    keyboard_shortcuts: Dict[str, str] = field(default_factory=dict)

    # python attribute -> persisted JSON key
    FIELD_NAMES = {
        "theme": "theme",
        "animations_enabled": "animationsEnabled",
        "animation_speed": "animationSpeed",
        "icons_enabled": "iconsEnabled",
        "show_descriptions": "showDescriptions",
        "show_previews": "showPreviews",
        "history_size": "historySize",
        "keyboard_shortcuts": "keyboardShortcuts",
    }

    def to_dict(self) -> Dict[str, Any]:
        return {
            self.FIELD_NAMES[f.name]: copy.deepcopy(getattr(self, f.name))
            for f in fields(self)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserPreferences":
        reverse = {v: k for k, v in cls.FIELD_NAMES.items()}
        kwargs = {reverse[k]: copy.deepcopy(v) for k, v in data.items() if k in reverse}
        return cls(**kwargs)


def _check_theme(value):
    if value not in VALID_THEMES:
        raise ConfigurationError(
            f"Invalid theme: {value}. Must be one of: {', '.join(VALID_THEMES)}", "preferences.theme"
        )
    return value


def _check_speed(value):
    if value not in VALID_SPEEDS:
        raise ConfigurationError(
            f"Invalid animationSpeed: {value}. Must be one of: {', '.join(VALID_SPEEDS)}",
            "preferences.animationSpeed"
        )
    return value


def _check_bool(name):
    def check(value):
        if not isinstance(value, bool):
            raise ConfigurationError(f"{name} must be a boolean", f"preferences.{name}")
        return value
    return check


def _check_history_size(value):
    low, high = HISTORY_SIZE_RANGE
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise ConfigurationError(
            f"historySize must be an integer between {low} and {high}", "preferences.historySize"
        )
    return value


def _check_shortcuts(value):
    if not isinstance(value, dict):
        raise ConfigurationError("keyboardShortcuts must be an object", "preferences.keyboardShortcuts")
    for key, action in value.items():
        if not isinstance(key, str) or not key.strip():
            raise ConfigurationError("keyboardShortcuts keys must be non-empty strings",
                                     "preferences.keyboardShortcuts")
        if not isinstance(action, str) or not action.strip():
            raise ConfigurationError(f"Invalid action for key '{key}': must be a non-empty string",
                                     "preferences.keyboardShortcuts")
    return {k.strip().lower(): v.strip() for k, v in value.items()}


VALIDATORS: Dict[str, Callable[[Any], Any]] = {
    "theme": _check_theme,
    "animationSpeed": _check_speed,
    "historySize": _check_history_size,
    "keyboardShortcuts": _check_shortcuts,
    **{name: _check_bool(name) for name in BOOLEAN_FIELDS},
}


class ConfigManager:
    """Manage cmdmenu preferences"""

    DEFAULT_CONFIG = {
        "version": CONFIG_VERSION,
        "preferences": UserPreferences().to_dict(),
    }

    ENV_PREFIX = "CMDMENU_"

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path) if config_path else data_home() / "config.json"
        self.config: Optional[Dict[str, Any]] = None

    @classmethod
    def get_default_config(cls) -> Dict[str, Any]:
        return copy.deepcopy(cls.DEFAULT_CONFIG)

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from disk.

        A missing file, unparsable JSON or a broken structure never reaches the
        caller: defaults are used and written back immediately. Fields dropped
        during migration are removed from the file too.
        """
        if not self.config_path.exists():
            self.config = self.get_default_config()
            self._write_back()
            return self.config

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Config file {self.config_path} is corrupted ({e}). Using default configuration.")
            self.config = self.get_default_config()
            self._write_back()
            return self.config
        except OSError as e:
            logger.warning(f"Failed to read config file {self.config_path}: {e}. Using default configuration.")
            self.config = self.get_default_config()
            return self.config

        if not isinstance(loaded, dict) or not isinstance(loaded.get("preferences"), dict):
            logger.warning(f"Config file {self.config_path} has an invalid structure. Using default configuration.")
            self.config = self.get_default_config()
            self._write_back()
            return self.config

        self.config = self.validate_and_migrate(loaded)
        logger.info(f"Loaded configuration from {self.config_path}")
        if self.config != loaded:
            logger.info("Configuration was migrated, writing the cleaned copy back")
            self._write_back()
        return self.config

    def _write_back(self) -> None:
        try:
            self.save(self.config)
        except PersistenceError as e:
            logger.warning(f"Could not write configuration back to {self.config_path}: {e}")

    def validate_and_migrate(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Keep every valid user field, drop unknown or invalid ones"""
        migrated = self.get_default_config()
        if isinstance(config.get("version"), str) and config["version"]:
            migrated["version"] = config["version"]

        for key, value in config.get("preferences", {}).items():
            validator = VALIDATORS.get(key)
            if validator is None:
                logger.debug(f"Dropping unknown preference: {key}")
                continue
            try:
                migrated["preferences"][key] = validator(value)
            except ConfigurationError as e:
                logger.warning(f"Dropping invalid preference {key!r}: {e.message}")

        return migrated

    def validate_config(self, config: Any) -> None:
        if not isinstance(config, dict):
            raise ConfigurationError("Config must be an object")
        if not config.get("version"):
            raise ConfigurationError("Config must have a version", "version")
        prefs = config.get("preferences")
        if not isinstance(prefs, dict):
            raise ConfigurationError("Config must have preferences object", "preferences")
        for key, value in prefs.items():
            validator = VALIDATORS.get(key)
            if validator is None:
                raise ConfigurationError(f"Unknown preference: {key}", f"preferences.{key}")
            validator(value)

    def save(self, config: Optional[Dict[str, Any]] = None) -> Path:
        """
        Validate and save configuration to file

        Returns:
            Path to saved configuration file
        """
        config_to_save = config if config is not None else self.config
        if config_to_save is None:
            raise ConfigurationError("No configuration to save")

        self.validate_config(config_to_save)

        try:
            atomic_write_json(self.config_path, config_to_save)
        except OSError as e:
            raise PersistenceError(
                f"Failed to save configuration: {e}", self.config_path, "write"
            ) from e

        self.config = config_to_save
        logger.debug(f"Configuration saved to {self.config_path}")
        return self.config_path

    def _require_loaded(self) -> Dict[str, Any]:
        if self.config is None:
            raise ConfigurationError("Configuration not loaded. Call load() first.")
        return self.config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value with dot notation

        Args:
            key: Configuration key (e.g., "preferences.theme")
            default: Default value if key not found
        """
        value: Any = self._require_loaded()
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        """
        Validate, set and persist a configuration value with dot notation

        Args:
            key: Configuration key (e.g., "preferences.animationsEnabled")
            value: Value to set
        """
        config = self._require_loaded()
        parts = key.split(".")

        if parts == ["preferences"]:
            candidate = copy.deepcopy(config)
            candidate["preferences"] = value
        elif len(parts) == 2 and parts[0] == "preferences":
            validator = VALIDATORS.get(parts[1])
            if validator is None:
                raise ConfigurationError(f"Unknown preference: {parts[1]}", key)
            candidate = copy.deepcopy(config)
            candidate["preferences"][parts[1]] = validator(value)
        elif parts == ["version"]:
            candidate = copy.deepcopy(config)
            candidate["version"] = value
        else:
            raise ConfigurationError(f"Unknown configuration key: {key}", key)

        self.save(candidate)
        logger.debug(f"Configuration updated: {key} = {value}")

    def update_preferences(self, preferences: UserPreferences) -> None:
        self.set("preferences", preferences.to_dict())

    @property
    def preferences(self) -> UserPreferences:
        return UserPreferences.from_dict(self._require_loaded()["preferences"])

    def reset(self) -> None:
        """Reset configuration to defaults and persist"""
        self.save(self.get_default_config())
        logger.info("Configuration reset to defaults")

    def env_overrides(self) -> Dict[str, Any]:
        """
        Preference overrides from environment variables.

        Pattern: CMDMENU_<FIELD>=value, e.g. CMDMENU_ANIMATION_SPEED=fast.
        Invalid values are ignored with a warning; overrides are never persisted.
        """
        env_names = {
            self.ENV_PREFIX + name.upper(): json_key
            for name, json_key in UserPreferences.FIELD_NAMES.items()
            if json_key != "keyboardShortcuts"
        }
        overrides = {}
        for env_key, json_key in env_names.items():
            if env_key not in os.environ:
                continue
            value = self._parse_env_value(os.environ[env_key])
            try:
                overrides[json_key] = VALIDATORS[json_key](value)
            except ConfigurationError as e:
                logger.warning(f"Ignoring {env_key}: {e.message}")
        return overrides

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable value to appropriate type"""
        if value.lower() in ('true', 'yes'):
            return True
        elif value.lower() in ('false', 'no'):
            return False
        elif value.isdigit():
            return int(value)
        return value

    def to_dict(self) -> Dict[str, Any]:
        """Get entire configuration as dictionary"""
        return copy.deepcopy(self._require_loaded())
