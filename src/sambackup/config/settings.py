"""
Configuration settings management for sam-backup.

This module handles loading, validating, and saving configuration settings
from YAML files with support for environment variable overrides.

Configuration is loaded from ~/.sam-backup/config.yaml by default, with the
path overridable via the SAMBACKUP_CONFIG environment variable.

Cryptographic parameters are not configurable: they are part of the
backup file format.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".sam-backup"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"


@dataclass
class BackupConfig:
    """Backup file settings."""

    output_dir: str = str(DEFAULT_CONFIG_DIR / "backups")
    backup_before_restore: bool = True


@dataclass
class Settings:
    """
    Complete sam-backup configuration settings.

    Attributes:
        data_dir: Directory holding the SQLite database.
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR).
        backup: Backup file settings.
    """

    data_dir: str = str(DEFAULT_CONFIG_DIR / "data")
    log_level: str = "INFO"

    backup: BackupConfig = field(default_factory=BackupConfig)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def get_config_path() -> Path:
    """
    Get the configuration file path.

    Returns the path from SAMBACKUP_CONFIG environment variable if set,
    otherwise returns the default path (~/.sam-backup/config.yaml).
    """
    env_path = os.environ.get("SAMBACKUP_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> Settings:
    """
    Load configuration from YAML file.

    Reads configuration from the specified path (or default if not provided),
    applies environment variable overrides, and validates the configuration.
    A missing file yields the defaults.

    Args:
        config_path: Optional path to configuration file.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the configuration file cannot be read or
                          contains invalid settings.
    """
    if config_path is None:
        config_path = get_config_path()

    settings = Settings()

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping")

        settings = _apply_config_data(settings, config_data)

    settings = _apply_environment_overrides(settings)

    _validate_config(settings)

    return settings


def save_config(settings: Settings, config_path: Path | None = None) -> None:
    """
    Save configuration to YAML file.

    Raises:
        ConfigurationError: If the configuration cannot be written.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(config_path, "w") as f:
            yaml.safe_dump(
                _settings_to_dict(settings), f, default_flow_style=False, sort_keys=False
            )
    except OSError as e:
        raise ConfigurationError(f"Cannot write config file: {e}") from e


def _apply_config_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply configuration data from parsed YAML to settings."""
    general = data.get("sam_backup", {}) or {}

    if "data_dir" in general:
        settings.data_dir = str(general["data_dir"])
    if "log_level" in general:
        settings.log_level = str(general["log_level"]).upper()

    backup = data.get("backup", {}) or {}
    if "output_dir" in backup:
        settings.backup.output_dir = str(backup["output_dir"])
    if "backup_before_restore" in backup:
        settings.backup.backup_before_restore = _to_bool(backup["backup_before_restore"])

    return settings


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "SAMBACKUP_DATA_DIR": ("data_dir", str),
        "SAMBACKUP_LOG_LEVEL": ("log_level", lambda x: x.upper()),
        "SAMBACKUP_BACKUP_DIR": ("backup.output_dir", str),
    }

    for env_var, (attr_path, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested_attr(settings, attr_path, converter(value))

    return settings


def _set_nested_attr(obj: Any, path: str, value: Any) -> None:
    """Set a nested attribute on an object using dot notation."""
    parts = path.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "yes", "on", "1"}:
        return True
    if isinstance(value, str) and value.lower() in {"false", "no", "off", "0"}:
        return False
    raise ConfigurationError(f"Invalid boolean value: {value!r}")


def _validate_config(settings: Settings) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    if not settings.data_dir:
        raise ConfigurationError("data_dir must not be empty")

    if not settings.backup.output_dir:
        raise ConfigurationError("backup.output_dir must not be empty")


def _settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Convert Settings instance to dictionary for YAML serialization."""
    return {
        "sam_backup": {
            "data_dir": settings.data_dir,
            "log_level": settings.log_level,
        },
        "backup": {
            "output_dir": settings.backup.output_dir,
            "backup_before_restore": settings.backup.backup_before_restore,
        },
    }
