"""Locating, reading and validating the todostore configuration file.

Config files are YAML. String values may reference environment variables as
``${NAME}``; references are substituted before validation.

Lookup order when no path is given on the command line:
1. $TODOSTORE_CONFIG
2. ./todostore.yaml
3. $XDG_CONFIG_HOME/todostore/config.yaml

The CLI tolerates a missing file: ``load_config_or_default`` then returns
``Config.default()``.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from todostore.config.schema import Config
from todostore.paths import get_default_config_path

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TODOSTORE_CONFIG"
LOCAL_CONFIG_NAME = "todostore.yaml"

# ${NAME} where NAME is an upper-case shell identifier
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")


class ConfigError(Exception):
    """Base class for every configuration problem.

    Attributes:
        path: Config file involved, when known
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigNotFoundError(ConfigError):
    """No config file exists at the requested or searched locations."""


class ConfigValidationError(ConfigError):
    """The config file parsed but does not match the schema.

    Attributes:
        validation_errors: Pydantic error dicts, one per failing field
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        validation_errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message, path)
        self.validation_errors = list(validation_errors or [])


class EnvironmentVariableError(ConfigError):
    """A ``${NAME}`` reference names a variable that is not set."""

    def __init__(self, var_name: str, path: Path | None = None) -> None:
        message = f"Environment variable '{var_name}' referenced in config is not set"
        super().__init__(message, path)
        self.var_name = var_name


def _expand_string(text: str, strict: bool) -> str:
    def lookup(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in os.environ:
            return os.environ[name]
        if strict:
            raise EnvironmentVariableError(name)
        return match.group(0)

    return ENV_VAR_PATTERN.sub(lookup, text)


def expand_env_vars(value: Any, *, strict: bool = True) -> Any:
    """Substitute ``${NAME}`` references in strings, recursing into containers.

    Args:
        value: Parsed YAML value (mapping, list, string or scalar)
        strict: Raise for unset variables instead of leaving the reference

    Raises:
        EnvironmentVariableError: If strict and a referenced variable is unset

    Example:
        >>> os.environ["TODO_DATA"] = "/srv/todo"
        >>> expand_env_vars({"path": "${TODO_DATA}/state.db"})
        {'path': '/srv/todo/state.db'}
    """
    if isinstance(value, str):
        return _expand_string(value, strict)
    if isinstance(value, dict):
        return {key: expand_env_vars(item, strict=strict) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item, strict=strict) for item in value]
    return value


def _search_paths() -> list[Path]:
    paths = []
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        paths.append(Path(from_env).expanduser().resolve())
    paths.append(Path.cwd() / LOCAL_CONFIG_NAME)
    paths.append(get_default_config_path())
    return paths


def discover_config_path(explicit_path: str | Path | None = None) -> Path:
    """Return the config file to load.

    An explicit path (the ``--config`` option) must exist. Otherwise the
    first existing file among $TODOSTORE_CONFIG, ./todostore.yaml and the
    XDG location wins.

    Raises:
        ConfigNotFoundError: If the explicit path is missing, or no search
                             location holds a file
    """
    if explicit_path:
        requested = Path(explicit_path).expanduser().resolve()
        if not requested.exists():
            msg = f"Config file not found: {requested}"
            raise ConfigNotFoundError(msg, requested)
        return requested

    searched = _search_paths()
    for candidate in searched:
        if candidate.exists():
            return candidate

    listing = "".join(f"\n  - {p}" for p in searched)
    msg = f"No config file found. Searched locations:{listing}"
    raise ConfigNotFoundError(msg)


def load_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML mapping from ``path``.

    An empty file reads as an empty mapping.

    Raises:
        ConfigError: If the file is unreadable, not YAML, or not a mapping
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg, path) from e

    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in {path}: {e}"
        raise ConfigError(msg, path) from e

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        msg = f"Top level of {path.name} must be a mapping, got {type(parsed).__name__}"
        raise ConfigError(msg, path)
    return parsed


def parse_config(raw_config: dict[str, Any], path: Path | None = None) -> Config:
    """Validate a raw config mapping.

    Raises:
        ConfigValidationError: If the mapping fails schema validation
    """
    try:
        return Config.model_validate(raw_config)
    except ValidationError as e:
        problems = e.errors()
        lines = [
            "  - {}: {}".format(".".join(str(part) for part in err["loc"]) or "(root)", err["msg"])
            for err in problems
        ]
        message = f"Config validation failed ({len(problems)} error(s)):\n" + "\n".join(lines)
        raise ConfigValidationError(
            message, path=path, validation_errors=[dict(err) for err in problems]
        ) from e


def load_config(
    path: str | Path | None = None,
    *,
    expand_env: bool = True,
) -> Config:
    """Find, read and validate the configuration.

    Args:
        path: Config file from ``--config``; None searches the usual locations
        expand_env: Substitute ``${NAME}`` references before validating

    Returns:
        Validated Config

    Raises:
        ConfigNotFoundError: No file at the explicit path or any search location
        EnvironmentVariableError: A referenced variable is unset
        ConfigValidationError: The file does not match the schema
        ConfigError: The file cannot be read or parsed

    Example:
        >>> config = load_config("~/.config/todostore/config.yaml")
        >>> config.persistence.debounce_ms
        300
    """
    config_path = discover_config_path(path)
    raw_config = load_yaml(config_path)

    if expand_env:
        try:
            raw_config = expand_env_vars(raw_config)
        except EnvironmentVariableError as e:
            e.path = config_path
            raise

    config = parse_config(raw_config, config_path)
    logger.debug("Loaded config from %s", config_path)
    return config


def load_config_or_default(path: str | Path | None = None) -> Config:
    """Load configuration, falling back to defaults when no file is found.

    An explicit ``path`` that does not exist is still an error.
    """
    if path is not None:
        return load_config(path)
    try:
        return load_config()
    except ConfigNotFoundError:
        logger.debug("No config file found, using defaults")
        return Config.default()
