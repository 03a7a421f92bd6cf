"""Per-user favourite ("starred") dashboards."""

from __future__ import annotations

import sqlite3

from dashstore.db.connection import transaction


def star_dashboard(conn: sqlite3.Connection, user_id: int, dashboard_id: int) -> None:
    """Star *dashboard_id* for *user_id*.  Starring twice is a no-op."""
    with transaction(conn):
        conn.execute(
            "INSERT OR IGNORE INTO star (user_id, dashboard_id) VALUES (?, ?)",
            (user_id, dashboard_id),
        )


def unstar_dashboard(conn: sqlite3.Connection, user_id: int, dashboard_id: int) -> None:
    with transaction(conn):
        conn.execute(
            "DELETE FROM star WHERE user_id = ? AND dashboard_id = ?",
            (user_id, dashboard_id),
        )


def is_starred(conn: sqlite3.Connection, user_id: int, dashboard_id: int) -> bool:
    row = conn.execute(
        "SELECT 1 FROM star WHERE user_id = ? AND dashboard_id = ?",
        (user_id, dashboard_id),
    ).fetchone()
    return row is not None
