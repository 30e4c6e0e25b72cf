"""Pydantic schema models for configuration.

This module defines all configuration models:
- Config: Top-level configuration container
- HistoryConfig: Undo/redo history settings
- PersistenceConfig: Storage backend and debounce settings
- LoggingConfig: Log verbosity and format
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from todostore.paths import get_default_db_path


class BackendType(str, Enum):
    """Storage backend used for the persisted state."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class HistoryConfig(BaseModel):
    """Undo/redo history configuration.

    Attributes:
        limit: Maximum number of undo steps kept (1-1000, default: 50)
    """

    model_config = ConfigDict(extra="forbid")

    limit: Annotated[int, Field(ge=1, le=1000)] = 50


class PersistenceConfig(BaseModel):
    """State persistence configuration.

    Attributes:
        backend: Storage backend ('sqlite' or 'memory')
        path: SQLite database path (default: XDG data dir)
              Uses $XDG_DATA_HOME/todostore/state.db
        key: Storage key the state is kept under
        debounce_ms: Quiet period before a write in milliseconds (0-10000, default: 300)
    """

    model_config = ConfigDict(extra="forbid")

    backend: BackendType = BackendType.SQLITE
    path: str | None = None
    key: Annotated[str, Field(min_length=1, max_length=100)] = "advanced-todo-app"
    debounce_ms: Annotated[int, Field(ge=0, le=10000)] = 300

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Reject keys that are only whitespace."""
        if not v.strip():
            msg = "key must not be blank"
            raise ValueError(msg)
        return v

    def get_path(self) -> Path:
        """Get the database path, expanding ~ if needed."""
        if self.path:
            return Path(self.path).expanduser()
        return get_default_db_path()

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        verbose: Enable DEBUG level logging
        json: Emit JSON lines instead of console output
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    verbose: bool = False
    json_output: bool = Field(default=True, alias="json")


class Config(BaseModel):
    """Top-level configuration loaded from YAML.

    Attributes:
        version: Schema version (must be 1)
        history: Undo/redo settings
        persistence: Storage settings
        logging: Log settings
    """

    model_config = ConfigDict(extra="forbid")

    version: Literal[1]
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> Config:
        """Return the configuration used when no config file exists."""
        return cls(version=1)
