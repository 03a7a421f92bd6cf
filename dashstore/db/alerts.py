"""CRUD helpers for alert definitions attached to dashboard panels.

Scheduling and evaluation live elsewhere; this module only keeps the rows so
dashboard deletion can clean them up.
"""

from __future__ import annotations

import json
import sqlite3
from time import time
from typing import Any, Optional

from dashstore.db.connection import transaction
from dashstore.db.models import Alert


def _row_to_alert(row: sqlite3.Row) -> Alert:
    return Alert(
        id=row["id"],
        org_id=row["org_id"],
        dashboard_id=row["dashboard_id"],
        panel_id=row["panel_id"],
        name=row["name"],
        settings=json.loads(row["settings"] or "{}"),
    )


def save_alert(
    conn: sqlite3.Connection,
    org_id: int,
    dashboard_id: int,
    panel_id: int,
    name: str,
    settings: Optional[dict[str, Any]] = None,
) -> Alert:
    """Insert an alert definition for a dashboard panel and return it."""
    now = int(time())
    with transaction(conn):
        cursor = conn.execute(
            """
            INSERT INTO alert (org_id, dashboard_id, panel_id, name, settings, created, updated)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (org_id, dashboard_id, panel_id, name, json.dumps(settings or {}), now, now),
        )
    row = conn.execute("SELECT * FROM alert WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return _row_to_alert(row)


def get_alerts_by_dashboard(conn: sqlite3.Connection, dashboard_id: int) -> list[Alert]:
    rows = conn.execute(
        "SELECT * FROM alert WHERE dashboard_id = ? ORDER BY panel_id", (dashboard_id,)
    ).fetchall()
    return [_row_to_alert(r) for r in rows]


def delete_alert_definitions(conn: sqlite3.Connection, dashboard_id: int) -> int:
    """Delete every alert definition of *dashboard_id*.

    Runs on the caller's connection without committing, so it takes part in
    whatever transaction is open (the dashboard delete).

    Returns:
        The number of alert rows removed.
    """
    cursor = conn.execute("DELETE FROM alert WHERE dashboard_id = ?", (dashboard_id,))
    return cursor.rowcount
