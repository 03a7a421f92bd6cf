"""Request-scoped dependencies for the routers."""

from __future__ import annotations

import sqlite3
from typing import Iterator

from fastapi import Request

from dashstore.db import get_connection


def get_db(request: Request) -> Iterator[sqlite3.Connection]:
    """Open a connection for one request and close it when the response is sent.

    Sync routes run on a thread pool, so each request gets its own connection
    and its own transactions; SQLite's locking arbitrates between them.
    """
    conn = get_connection(request.app.state.db_path)
    try:
        yield conn
    finally:
        conn.close()
