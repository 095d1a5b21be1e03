"""Tests for configuration settings."""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import yaml

from sambackup.config.settings import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    BackupConfig,
    ConfigurationError,
    Settings,
    _apply_environment_overrides,
    _set_nested_attr,
    _settings_to_dict,
    _to_bool,
    _validate_config,
    get_config_path,
    load_config,
    save_config,
)


def clean_environ() -> dict[str, str]:
    """Current environment without any SAMBACKUP_ variables."""
    return {k: v for k, v in os.environ.items() if not k.startswith("SAMBACKUP_")}


class TestSettings(unittest.TestCase):
    """Tests for the Settings dataclass."""

    def test_settings_defaults(self) -> None:
        """Test Settings default values."""
        settings = Settings()

        self.assertEqual(settings.data_dir, str(DEFAULT_CONFIG_DIR / "data"))
        self.assertEqual(settings.log_level, "INFO")
        self.assertIsInstance(settings.backup, BackupConfig)
        self.assertEqual(settings.backup.output_dir, str(DEFAULT_CONFIG_DIR / "backups"))
        self.assertTrue(settings.backup.backup_before_restore)

    def test_default_paths(self) -> None:
        """Test the default config file lives in ~/.sam-backup."""
        self.assertEqual(DEFAULT_CONFIG_DIR, Path.home() / ".sam-backup")
        self.assertEqual(DEFAULT_CONFIG_FILE, DEFAULT_CONFIG_DIR / "config.yaml")


class TestGetConfigPath(unittest.TestCase):
    """Tests for get_config_path()."""

    def test_default(self) -> None:
        """Test the default path is used without the environment variable."""
        with patch.dict(os.environ, clean_environ(), clear=True):
            self.assertEqual(get_config_path(), DEFAULT_CONFIG_FILE)

    def test_environment_override(self) -> None:
        """Test SAMBACKUP_CONFIG overrides the path."""
        with patch.dict(os.environ, {"SAMBACKUP_CONFIG": "/tmp/custom.yaml"}):
            self.assertEqual(get_config_path(), Path("/tmp/custom.yaml"))


class TestLoadConfig(unittest.TestCase):
    """Tests for load_config function."""

    def setUp(self) -> None:
        """Create temporary directory for tests."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "config.yaml"
        self.env = patch.dict(os.environ, clean_environ(), clear=True)
        self.env.start()

    def tearDown(self) -> None:
        """Clean up temporary directory."""
        self.env.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_nonexistent_file_returns_defaults(self) -> None:
        """Test loading config when file doesn't exist returns defaults."""
        settings = load_config(Path(self.temp_dir) / "nonexistent.yaml")

        self.assertEqual(settings.log_level, "INFO")
        self.assertTrue(settings.backup.backup_before_restore)

    def test_load_from_yaml(self) -> None:
        """Test loading config from YAML file."""
        self.config_path.write_text(
            """
sam_backup:
  data_dir: /custom/data
  log_level: debug

backup:
  output_dir: /custom/backups
  backup_before_restore: false
"""
        )

        settings = load_config(self.config_path)

        self.assertEqual(settings.data_dir, "/custom/data")
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertEqual(settings.backup.output_dir, "/custom/backups")
        self.assertFalse(settings.backup.backup_before_restore)

    def test_partial_yaml_keeps_defaults(self) -> None:
        """Test sections missing from the file keep their defaults."""
        self.config_path.write_text("backup:\n  output_dir: /elsewhere\n")

        settings = load_config(self.config_path)

        self.assertEqual(settings.backup.output_dir, "/elsewhere")
        self.assertEqual(settings.log_level, "INFO")
        self.assertTrue(settings.backup.backup_before_restore)

    def test_empty_file(self) -> None:
        """Test an empty file yields the defaults."""
        self.config_path.write_text("")

        settings = load_config(self.config_path)

        self.assertEqual(settings.log_level, "INFO")

    def test_invalid_yaml(self) -> None:
        """Test malformed YAML raises ConfigurationError."""
        self.config_path.write_text("sam_backup: [unclosed\n")

        with self.assertRaises(ConfigurationError):
            load_config(self.config_path)

    def test_non_mapping_yaml(self) -> None:
        """Test a YAML list at top level is rejected."""
        self.config_path.write_text("- one\n- two\n")

        with self.assertRaises(ConfigurationError):
            load_config(self.config_path)

    def test_invalid_log_level(self) -> None:
        """Test an unknown log level is rejected."""
        self.config_path.write_text("sam_backup:\n  log_level: LOUD\n")

        with self.assertRaises(ConfigurationError):
            load_config(self.config_path)

    def test_invalid_boolean(self) -> None:
        """Test a non-boolean backup_before_restore is rejected."""
        self.config_path.write_text("backup:\n  backup_before_restore: sometimes\n")

        with self.assertRaises(ConfigurationError):
            load_config(self.config_path)

    def test_environment_overrides_file(self) -> None:
        """Test environment variables win over the file."""
        self.config_path.write_text("sam_backup:\n  data_dir: /from/file\n")

        with patch.dict(
            os.environ,
            {
                "SAMBACKUP_DATA_DIR": "/from/env",
                "SAMBACKUP_LOG_LEVEL": "warning",
                "SAMBACKUP_BACKUP_DIR": "/env/backups",
            },
        ):
            settings = load_config(self.config_path)

        self.assertEqual(settings.data_dir, "/from/env")
        self.assertEqual(settings.log_level, "WARNING")
        self.assertEqual(settings.backup.output_dir, "/env/backups")


class TestSaveConfig(unittest.TestCase):
    """Tests for save_config function."""

    def setUp(self) -> None:
        self.temp_dir = tempfile.mkdtemp()
        self.env = patch.dict(os.environ, clean_environ(), clear=True)
        self.env.start()

    def tearDown(self) -> None:
        self.env.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_save_and_reload(self) -> None:
        """Test saved settings load back unchanged."""
        config_path = Path(self.temp_dir) / "sub" / "config.yaml"
        settings = Settings(data_dir="/data", log_level="ERROR")
        settings.backup.backup_before_restore = False

        save_config(settings, config_path)
        loaded = load_config(config_path)

        self.assertEqual(loaded, settings)

    def test_saved_file_layout(self) -> None:
        """Test the file uses the sam_backup and backup sections."""
        config_path = Path(self.temp_dir) / "config.yaml"

        save_config(Settings(), config_path)

        with open(config_path) as f:
            data = yaml.safe_load(f)
        self.assertEqual(set(data), {"sam_backup", "backup"})


class TestHelpers(unittest.TestCase):
    """Tests for private helper functions."""

    def test_set_nested_attr(self) -> None:
        """Test dotted paths reach nested dataclasses."""
        settings = Settings()

        _set_nested_attr(settings, "backup.output_dir", "/nested")

        self.assertEqual(settings.backup.output_dir, "/nested")

    def test_apply_environment_overrides_untouched(self) -> None:
        """Test settings are unchanged without environment variables."""
        with patch.dict(os.environ, clean_environ(), clear=True):
            settings = _apply_environment_overrides(Settings())

        self.assertEqual(settings, Settings())

    def test_to_bool(self) -> None:
        """Test accepted boolean spellings."""
        for value in (True, "true", "Yes", "on", "1"):
            with self.subTest(value=value):
                self.assertTrue(_to_bool(value))
        for value in (False, "false", "NO", "off", "0"):
            with self.subTest(value=value):
                self.assertFalse(_to_bool(value))

    def test_validate_empty_dirs(self) -> None:
        """Test empty directories are rejected."""
        with self.assertRaises(ConfigurationError):
            _validate_config(Settings(data_dir=""))

        settings = Settings()
        settings.backup.output_dir = ""
        with self.assertRaises(ConfigurationError):
            _validate_config(settings)

    def test_settings_to_dict(self) -> None:
        """Test the dictionary mirrors the settings."""
        result = _settings_to_dict(Settings(log_level="DEBUG"))

        self.assertEqual(result["sam_backup"]["log_level"], "DEBUG")
        self.assertTrue(result["backup"]["backup_before_restore"])


if __name__ == "__main__":
    unittest.main()
