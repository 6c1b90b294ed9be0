"""
Configuration management for RBAC Guard.
"""

from rbacguard.config.settings import (
    ConfigError,
    Settings,
    load_settings_from_env,
)

__all__ = [
    "ConfigError",
    "Settings",
    "load_settings_from_env",
]
