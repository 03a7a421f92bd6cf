"""SQLite connections and the transaction scope every store function shares.

There is no module-level connection: callers open one with
:func:`get_connection` and pass it to each store function, which wraps its
writes in :func:`transaction`::

    conn = get_connection()
    with transaction(conn):
        conn.execute("UPDATE dashboard SET title = ? WHERE id = ?", (title, 1))

A connection belongs to one unit of work at a time.  The API opens one per
request; two threads must never share a connection.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from dashstore.config import settings

_MEMORY = ":memory:"


def get_connection(db_path: Optional[Union[Path, str]] = None) -> sqlite3.Connection:
    """Connect to the dashboard database.

    The connection enforces foreign keys, uses WAL journaling on disk, and
    yields :class:`sqlite3.Row` rows.  It runs in autocommit mode: the only
    multi-statement transactions are the ones :func:`transaction` opens.

    Args:
        db_path: File to open, or ``":memory:"``. ``None`` means
            ``settings.db_path`` inside the workspace, created on demand.
    """
    if db_path is None:
        settings.ensure_workspace()
        target = str(settings.db_path)
    else:
        target = str(db_path)
        if target != _MEMORY:
            Path(target).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(target, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    for pragma in ("foreign_keys = ON", "journal_mode = WAL"):
        conn.execute(f"PRAGMA {pragma}")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the enclosed statements as one all-or-nothing unit.

    Opens with ``BEGIN IMMEDIATE`` so the write lock is held from the first
    read: a concurrent writer waits (up to the connection timeout) instead of
    reading a snapshot that goes stale before its own write.  Commits on
    success; on any exception rolls back and re-raises.

    Scopes do not nest.  Opening one on a connection that is already inside
    a transaction raises :class:`sqlite3.OperationalError`.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()
