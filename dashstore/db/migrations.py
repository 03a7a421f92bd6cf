"""Schema bootstrap and versioned migrations.

``init_db`` can run against a fresh or an existing database: the bundled DDL
only uses ``IF NOT EXISTS``, and migrations already recorded in
``schema_version`` are skipped.
"""

from __future__ import annotations

import logging
import sqlite3

from dashstore.config import settings
from dashstore.db.connection import transaction

logger = logging.getLogger(__name__)

_VERSION_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version     INTEGER PRIMARY KEY,
        applied_at  INTEGER DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
    )
"""

# Ordered ``(version, statement)`` pairs applied on top of schema.sql.
# Add new entries at the end with the next version number.
MIGRATIONS: list[tuple[int, str]] = []


def init_db(conn: sqlite3.Connection) -> None:
    """Create every table and index, then bring the schema up to date.

    Args:
        conn: Connection from :func:`~dashstore.db.connection.get_connection`.
    """
    ddl = settings.schema_path.read_text(encoding="utf-8")
    # executescript commits any pending transaction first; DDL only here.
    conn.executescript(ddl)
    conn.execute(_VERSION_TABLE_DDL)
    migrate(conn)


def current_version(conn: sqlite3.Connection) -> int:
    """Highest migration number recorded, or 0 for a bare schema."""
    (version,) = conn.execute("SELECT IFNULL(MAX(version), 0) FROM schema_version").fetchone()
    return int(version)


def migrate(conn: sqlite3.Connection) -> int:
    """Apply pending migrations in order; returns how many ran."""
    start = current_version(conn)
    pending = [(v, stmt) for v, stmt in MIGRATIONS if v > start]
    for version, stmt in sorted(pending):
        logger.info("applying schema migration %d", version)
        with transaction(conn):
            conn.execute(stmt)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
    return len(pending)
