"""Durable backend keeping the state payload in a local SQLite file.

The database is a key-value blob store: table ``app_state`` holds one JSON
payload per storage key. Opening a backend creates the file (mode 600) and
its parent directories if needed and applies pending table migrations.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from todostore.persistence.codec import decode_state, encode_state
from todostore.persistence.migrations import migrate_database
from todostore.state.models import SCHEMA_VERSION

if TYPE_CHECKING:
    from collections.abc import Iterator

    from todostore.state.models import AppState

logger = logging.getLogger(__name__)

# Storage key used when none is configured
DEFAULT_STORAGE_KEY = "advanced-todo-app"


def _restrict_permissions(path: Path) -> None:
    try:
        os.chmod(path, 0o600)  # noqa: PTH101
    except OSError as e:
        logger.warning("Could not restrict permissions on %s: %s", path, e)
    else:
        logger.debug("Restricted permissions to 600: %s", path)


class SQLiteBackend:
    """Load, save and clear one AppState payload in SQLite.

    The connection is shared with the debouncer's timer thread, so every
    statement runs under an internal lock.

    Args:
        db_path: Database file; created on first use
        key: Storage key the payload is kept under

    Example:
        >>> backend = SQLiteBackend("~/.local/share/todostore/state.db")
        >>> backend.save(state)
        >>> backend.load() == state
        True
    """

    def __init__(self, db_path: str | Path, key: str = DEFAULT_STORAGE_KEY) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self.key = key
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        created = not self.db_path.exists()
        migrate_database(self._connection())
        if created:
            _restrict_permissions(self.db_path)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            # Debounced saves run on a timer thread
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            self._conn = conn
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements atomically, holding the backend lock.

        Commits when the block exits normally and rolls back (re-raising)
        when it raises.
        """
        with self._lock:
            conn = self._connection()
            try:
                yield conn
            except Exception:
                conn.rollback()
                raise
            conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None

    def _fetch(self, column: str) -> sqlite3.Row | None:
        with self._lock:
            return self._connection().execute(
                f"SELECT {column} FROM app_state WHERE key = ?",  # noqa: S608
                (self.key,),
            ).fetchone()

    def load(self) -> AppState | None:
        """Return the stored state, or None if nothing usable is stored."""
        row = self._fetch("payload")
        return decode_state(row["payload"]) if row is not None else None

    def save(self, state: AppState) -> None:
        """Replace the stored payload with ``state``."""
        payload = encode_state(state)
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO app_state (key, payload, schema_version, updated_at) "
                "VALUES (?, ?, ?, datetime('now'))",
                (self.key, payload, SCHEMA_VERSION),
            )
        logger.debug("Saved state under %r (%d todos)", self.key, len(state.todos))

    def clear(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM app_state WHERE key = ?", (self.key,))
        logger.info("Cleared stored state under %r", self.key)

    def updated_at(self) -> str | None:
        """Return the SQLite UTC timestamp of the last save, if any."""
        row = self._fetch("updated_at")
        return row["updated_at"] if row is not None else None
