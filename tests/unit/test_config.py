"""
Tests for RBAC Guard settings.

Tests defaults, file loading, key aliases and environment overrides.
"""

from __future__ import annotations

import json

import pytest

from rbacguard.config import ConfigError, Settings, load_settings_from_env


class TestSettings:
    """Tests for Settings dataclass."""

    def test_defaults(self):
        settings = Settings()
        assert settings.exceptions_path == "exceptions.json"
        assert settings.dataset_dir is None
        assert settings.filename_pattern == ""
        assert settings.csa_enforced is True
        assert settings.partitioned is False
        assert settings.log_level == "WARNING"
        assert settings.log_format == "human"

    def test_invalid_log_format(self):
        with pytest.raises(ConfigError):
            Settings(log_format="xml")

    def test_to_dict(self):
        data = Settings(dataset_dir="/data").to_dict()
        assert data["dataset_dir"] == "/data"
        assert data["csa_enforced"] is True
        assert set(data) == {
            "exceptions_path",
            "dataset_dir",
            "filename_pattern",
            "csa_enforced",
            "partitioned",
            "log_level",
            "log_format",
        }

    def test_from_dict_camel_case(self):
        settings = Settings.from_dict(
            {
                "exceptionsPath": "/store/exceptions.json",
                "datasetDir": "/data",
                "filenamePattern": "rbac_audit",
                "csaEnforced": "false",
            }
        )
        assert settings.exceptions_path == "/store/exceptions.json"
        assert settings.dataset_dir == "/data"
        assert settings.filename_pattern == "rbac_audit"
        assert settings.csa_enforced is False

    def test_from_dict_ignores_unknown_keys(self):
        settings = Settings.from_dict({"partitioned": True, "unused": 1})
        assert settings.partitioned is True

    def test_from_dict_null_filename_pattern(self):
        settings = Settings.from_dict({"filenamePattern": None})
        assert settings.filename_pattern == ""

    def test_from_dict_null_exceptions_path(self):
        with pytest.raises(ConfigError) as exc_info:
            Settings.from_dict({"exceptionsPath": None}, "config.yaml")
        assert exc_info.value.source_path == "config.yaml"

    def test_from_dict_invalid_bool(self):
        with pytest.raises(ConfigError) as exc_info:
            Settings.from_dict({"csa_enforced": "sometimes"}, "config.yaml")
        assert exc_info.value.source_path == "config.yaml"

    def test_from_dict_not_mapping(self):
        with pytest.raises(ConfigError):
            Settings.from_dict(["exceptions.json"])

    def test_round_trip(self):
        settings = Settings(exceptions_path="x.json", partitioned=True, log_format="json")
        assert Settings.from_dict(settings.to_dict()) == settings

    def test_with_overrides(self):
        settings = Settings(exceptions_path="a.json")
        updated = settings.with_overrides(exceptions_path="b.json", dataset_dir=None)
        assert updated.exceptions_path == "b.json"
        assert updated.dataset_dir is None
        assert settings.exceptions_path == "a.json"


class TestSettingsFile:
    """Tests for loading settings files."""

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "rbacguard.yaml"
        path.write_text(
            "exceptionsPath: /store/exceptions.json\n"
            "datasetDir: /data\n"
            "csaEnforced: no\n"
            "log_format: json\n"
        )
        settings = Settings.from_file(path)
        assert settings.exceptions_path == "/store/exceptions.json"
        assert settings.dataset_dir == "/data"
        assert settings.csa_enforced is False
        assert settings.log_format == "json"

    def test_from_json(self, tmp_path):
        path = tmp_path / "rbacguard.json"
        path.write_text(json.dumps({"exceptions_path": "store.json", "partitioned": True}))
        settings = Settings.from_file(path)
        assert settings.exceptions_path == "store.json"
        assert settings.partitioned is True

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Settings.from_file(path) == Settings()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Settings.from_file(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("exceptionsPath: [unclosed\n")
        with pytest.raises(ConfigError) as exc_info:
            Settings.from_file(path)
        assert exc_info.value.source_path == str(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{")
        with pytest.raises(ConfigError):
            Settings.from_file(path)


class TestLoadSettingsFromEnv:
    """Tests for load_settings_from_env."""

    def test_empty_environment(self):
        assert load_settings_from_env({}) == Settings()

    def test_environment_values(self):
        settings = load_settings_from_env(
            {
                "RBACGUARD_EXCEPTIONS_PATH": "/store/exceptions.json",
                "RBACGUARD_DATASET_DIR": "/data",
                "RBACGUARD_FILENAME_PATTERN": "rbac_audit",
                "RBACGUARD_CSA_ENFORCED": "false",
            }
        )
        assert settings.exceptions_path == "/store/exceptions.json"
        assert settings.dataset_dir == "/data"
        assert settings.filename_pattern == "rbac_audit"
        assert settings.csa_enforced is False

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "rbacguard.yaml"
        path.write_text("exceptionsPath: from-file.json\ndatasetDir: /data\n")
        settings = load_settings_from_env(
            {
                "RBACGUARD_CONFIG_FILE": str(path),
                "RBACGUARD_EXCEPTIONS_PATH": "from-env.json",
            }
        )
        assert settings.exceptions_path == "from-env.json"
        assert settings.dataset_dir == "/data"

    def test_explicit_config_file(self, tmp_path):
        """An explicit config file replaces RBACGUARD_CONFIG_FILE, not the overrides."""
        path = tmp_path / "rbacguard.yaml"
        path.write_text("exceptionsPath: from-file.json\nfilenamePattern: null\n")
        settings = load_settings_from_env(
            {
                "RBACGUARD_CONFIG_FILE": str(tmp_path / "missing.yaml"),
                "RBACGUARD_DATASET_DIR": "/data",
            },
            config_file=path,
        )
        assert settings.exceptions_path == "from-file.json"
        assert settings.dataset_dir == "/data"
        assert settings.filename_pattern == ""

    def test_invalid_bool(self):
        with pytest.raises(ConfigError):
            load_settings_from_env({"RBACGUARD_CSA_ENFORCED": "maybe"})
