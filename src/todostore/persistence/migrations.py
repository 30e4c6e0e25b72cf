"""Versioned table layout of the SQLite state database.

Each migration moves the database up by one version and records it in the
``schema_version`` table. Opening a database runs whatever steps are missing,
so a fresh file and an old file end up with the same tables.

Only the tables are versioned here; the JSON payload inside ``app_state``
carries its own ``meta.schemaVersion``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Callable

    Migration = Callable[[sqlite3.Connection], None]

logger = logging.getLogger(__name__)

# Bump together with a new entry in MIGRATIONS
CURRENT_DB_VERSION = 1

_V1_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS app_state (
        key TEXT PRIMARY KEY,
        payload TEXT NOT NULL,
        schema_version INTEGER NOT NULL,
        updated_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
)


def _record_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO schema_version (version, applied_at) VALUES (?, datetime('now'))",
        (version,),
    )


def _migrate_to_v1(conn: sqlite3.Connection) -> None:
    """Create the version table and the key -> payload table."""
    for statement in _V1_STATEMENTS:
        conn.execute(statement)
    _record_version(conn, 1)
    conn.commit()
    logger.info("Created state database tables (v1)")


MIGRATIONS: dict[int, Migration] = {
    1: _migrate_to_v1,
}


def get_db_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied version, 0 for an empty database."""
    has_table = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
    ).fetchone()
    if has_table is None:
        return 0
    (version,) = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return version or 0


def migrate_database(
    conn: sqlite3.Connection,
    target_version: int | None = None,
) -> int:
    """Bring the database up to ``target_version``.

    Args:
        conn: Open connection to the state database
        target_version: Version to reach (default: CURRENT_DB_VERSION)

    Returns:
        Database version after migrating; unchanged if already there

    Raises:
        ValueError: If the target is out of range or a step is missing
    """
    target = CURRENT_DB_VERSION if target_version is None else target_version
    if not 0 <= target <= CURRENT_DB_VERSION:
        msg = f"Invalid target version: {target} (current max: {CURRENT_DB_VERSION})"
        raise ValueError(msg)

    version = get_db_version(conn)
    if version >= target:
        logger.debug("State database at v%d, nothing to migrate", version)
        return version

    logger.info("Upgrading state database v%d -> v%d", version, target)
    while version < target:
        version += 1
        step = MIGRATIONS.get(version)
        if step is None:
            msg = f"No migration registered for v{version}"
            raise ValueError(msg)
        step(conn)

    return version
