"""Configuration module for todostore.

This module provides configuration loading, validation, and schema definitions.

Usage:
    from todostore.config import load_config, Config

    config = load_config()  # Auto-discovers config file
    config = load_config("/path/to/config.yaml")  # Explicit path
"""

from todostore.config.loader import (
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
    EnvironmentVariableError,
    discover_config_path,
    expand_env_vars,
    load_config,
    load_config_or_default,
)
from todostore.config.schema import (
    BackendType,
    Config,
    HistoryConfig,
    LoggingConfig,
    PersistenceConfig,
)

__all__ = [
    "BackendType",
    "Config",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "EnvironmentVariableError",
    "HistoryConfig",
    "LoggingConfig",
    "PersistenceConfig",
    "discover_config_path",
    "expand_env_vars",
    "load_config",
    "load_config_or_default",
]
