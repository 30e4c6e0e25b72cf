"""Where todostore keeps its files, following the XDG base directory layout.

- config: $XDG_CONFIG_HOME/todostore/config.yaml (default ~/.config)
- state:  $XDG_DATA_HOME/todostore/state.db (default ~/.local/share)
"""

from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "todostore"

CONFIG_FILE_NAME = "config.yaml"
DB_FILE_NAME = "state.db"


def _xdg_home(env_var: str, *fallback: str) -> Path:
    value = os.environ.get(env_var)
    if value:
        return Path(value).expanduser()
    return Path.home().joinpath(*fallback)


def get_config_home() -> Path:
    """Return $XDG_CONFIG_HOME, or ~/.config when unset."""
    return _xdg_home("XDG_CONFIG_HOME", ".config")


def get_data_home() -> Path:
    """Return $XDG_DATA_HOME, or ~/.local/share when unset."""
    return _xdg_home("XDG_DATA_HOME", ".local", "share")


def get_config_dir() -> Path:
    return get_config_home() / APP_NAME


def get_data_dir() -> Path:
    return get_data_home() / APP_NAME


def get_default_config_path() -> Path:
    """Config file used when neither --config nor $TODOSTORE_CONFIG is given."""
    return get_config_dir() / CONFIG_FILE_NAME


def get_default_db_path() -> Path:
    """SQLite database used when the config does not set persistence.path."""
    return get_data_dir() / DB_FILE_NAME
