"""Persistence backends for the todo state store.

A backend is a key-value blob store holding one serialized AppState:
- SQLiteBackend: durable storage in a local SQLite database
- MemoryBackend: in-process storage for tests and throwaway sessions

Usage:
    from todostore.persistence import SQLiteBackend
    from todostore.paths import get_default_db_path

    backend = SQLiteBackend(get_default_db_path())
    state = backend.load()  # AppState | None
"""

from todostore.persistence.base import MemoryBackend, PersistenceBackend
from todostore.persistence.codec import decode_state, encode_state
from todostore.persistence.migrations import CURRENT_DB_VERSION, migrate_database
from todostore.persistence.sqlite import DEFAULT_STORAGE_KEY, SQLiteBackend

__all__ = [
    "CURRENT_DB_VERSION",
    "DEFAULT_STORAGE_KEY",
    "MemoryBackend",
    "PersistenceBackend",
    "SQLiteBackend",
    "decode_state",
    "encode_state",
    "migrate_database",
]
