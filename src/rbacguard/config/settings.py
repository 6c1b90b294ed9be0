"""
Settings for RBAC Guard.

A Settings value is read once per invocation and passed explicitly to
the operations that need it.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml


class ConfigError(Exception):
    """Exception raised when configuration is malformed."""

    def __init__(self, message: str, source_path: str | None = None):
        self.source_path = source_path
        prefix = f"{source_path}: " if source_path else ""
        super().__init__(f"{prefix}{message}")


LOG_FORMATS = ("human", "json")

# camelCase key -> attribute
KEY_ALIASES = {
    "exceptionsPath": "exceptions_path",
    "datasetDir": "dataset_dir",
    "filenamePattern": "filename_pattern",
    "csaEnforced": "csa_enforced",
    "logLevel": "log_level",
    "logFormat": "log_format",
}


def _parse_bool(value: Any, key: str, source: str | None = None) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off"):
        return False
    raise ConfigError(f"{key} must be a boolean, got {value!r}", source)


@dataclass
class Settings:
    """
    Invocation settings.

    Attributes:
        exceptions_path: Path to the exception store JSON file
        dataset_dir: Directory searched for the latest dataset
        filename_pattern: Filename prefix selecting dataset files
        csa_enforced: Suppress rows covered by exceptions when filtering;
            when False every row is reported as remaining
        partitioned: Write new stores as SecArch/ActionPlan partitions
        log_level: Logging level name
        log_format: human or json
    """

    exceptions_path: str = "exceptions.json"
    dataset_dir: str | None = None
    filename_pattern: str = ""
    csa_enforced: bool = True
    partitioned: bool = False
    log_level: str = "WARNING"
    log_format: str = "human"

    def __post_init__(self) -> None:
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(
                f"log_format must be one of {', '.join(LOG_FORMATS)}, got {self.log_format!r}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "exceptions_path": self.exceptions_path,
            "dataset_dir": self.dataset_dir,
            "filename_pattern": self.filename_pattern,
            "csa_enforced": self.csa_enforced,
            "partitioned": self.partitioned,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str | None = None) -> "Settings":
        """
        Create from dictionary.

        Accepts camelCase or snake_case keys; unknown keys are ignored.
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping", source)

        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = KEY_ALIASES.get(key, key)
            if name in known:
                values[name] = value

        for key in ("csa_enforced", "partitioned"):
            if key in values:
                values[key] = _parse_bool(values[key], key, source)
        if "exceptions_path" in values and values["exceptions_path"] is None:
            raise ConfigError("exceptions_path cannot be null", source)
        if "filename_pattern" in values and values["filename_pattern"] is None:
            # null means no prefix filter
            values["filename_pattern"] = ""
        for key in ("exceptions_path", "dataset_dir", "filename_pattern"):
            if key in values and values[key] is not None:
                values[key] = str(values[key])

        try:
            return cls(**values)
        except ConfigError as e:
            raise ConfigError(str(e), source)

    @classmethod
    def from_file(cls, path: str | Path) -> "Settings":
        """
        Load settings from a JSON or YAML file.

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigError: If the file cannot be parsed
        """
        path = Path(os.path.expanduser(str(path)))
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                if path.suffix.lower() in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
            except (json.JSONDecodeError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot parse configuration: {e}", str(path))

        return cls.from_dict(data if data is not None else {}, str(path))

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_settings_from_env(
    environ: dict[str, str] | None = None,
    config_file: str | Path | None = None,
) -> Settings:
    """
    Load settings from environment variables.

    Environment variables:
        RBACGUARD_CONFIG_FILE: Path to a configuration file
        RBACGUARD_EXCEPTIONS_PATH: Exception store path
        RBACGUARD_DATASET_DIR: Dataset directory
        RBACGUARD_FILENAME_PATTERN: Dataset filename prefix
        RBACGUARD_CSA_ENFORCED: true/false

    Values set directly in the environment override the file.

    Args:
        environ: Environment mapping (defaults to os.environ)
        config_file: Configuration file used instead of
            RBACGUARD_CONFIG_FILE
    """
    env = os.environ if environ is None else environ

    if not config_file:
        config_file = env.get("RBACGUARD_CONFIG_FILE")
    settings = Settings.from_file(config_file) if config_file else Settings()

    overrides: dict[str, Any] = {
        "exceptions_path": env.get("RBACGUARD_EXCEPTIONS_PATH"),
        "dataset_dir": env.get("RBACGUARD_DATASET_DIR"),
        "filename_pattern": env.get("RBACGUARD_FILENAME_PATTERN"),
    }
    csa = env.get("RBACGUARD_CSA_ENFORCED")
    if csa is not None:
        overrides["csa_enforced"] = _parse_bool(csa, "RBACGUARD_CSA_ENFORCED")

    return settings.with_overrides(**overrides)
