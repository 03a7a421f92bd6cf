"""Read access to ``dashboard_version`` history, and restoring from it.

History rows are only ever written by
:func:`~dashstore.db.dashboards.save_dashboard`; restoring a version is
itself a save, so it appends a new row rather than rewinding.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from dashstore.db.connection import transaction
from dashstore.db.dashboards import apply_save
from dashstore.db.models import (
    Dashboard,
    DashboardVersion,
    GetDashboardVersionQuery,
    GetDashboardVersionsQuery,
    RestoreDashboardVersionCommand,
    SaveDashboardCommand,
)
from dashstore.errors import DashboardNotFound

logger = logging.getLogger(__name__)


def _row_to_version(row: sqlite3.Row) -> DashboardVersion:
    return DashboardVersion(
        id=row["id"],
        dashboard_id=row["dashboard_id"],
        parent_version=row["parent_version"],
        restored_from=row["restored_from"],
        version=row["version"],
        created=row["created"],
        created_by=row["created_by"] or 0,
        message=row["message"],
        data=json.loads(row["data"] or "{}"),
    )


def _current_row(conn: sqlite3.Connection, dashboard_id: int, org_id: int) -> sqlite3.Row:
    row = conn.execute(
        "SELECT id, version, folder_id, is_folder, plugin_id FROM dashboard"
        " WHERE id = ? AND org_id = ?",
        (dashboard_id, org_id),
    ).fetchone()
    if row is None:
        raise DashboardNotFound()
    return row


def get_dashboard_versions(
    conn: sqlite3.Connection, query: GetDashboardVersionsQuery
) -> list[DashboardVersion]:
    """List history rows for a dashboard, newest first.

    ``limit`` 0 returns everything from ``start`` onwards.
    """
    _current_row(conn, query.dashboard_id, query.org_id)
    rows = conn.execute(
        """
        SELECT * FROM dashboard_version
        WHERE  dashboard_id = ?
        ORDER  BY version DESC
        LIMIT  ? OFFSET ?
        """,
        (query.dashboard_id, query.limit if query.limit > 0 else -1, query.start),
    ).fetchall()
    return [_row_to_version(r) for r in rows]


def get_dashboard_version(
    conn: sqlite3.Connection, query: GetDashboardVersionQuery
) -> DashboardVersion:
    _current_row(conn, query.dashboard_id, query.org_id)
    row = conn.execute(
        "SELECT * FROM dashboard_version WHERE dashboard_id = ? AND version = ?",
        (query.dashboard_id, query.version),
    ).fetchone()
    if row is None:
        raise DashboardNotFound(
            f"Dashboard {query.dashboard_id} has no version {query.version}"
        )
    return _row_to_version(row)


def restore_dashboard_version(
    conn: sqlite3.Connection, cmd: RestoreDashboardVersionCommand
) -> Dashboard:
    """Save an old version's body as the newest version of the dashboard.

    The restored body keeps the dashboard's current folder and plugin
    ownership and is written with ``overwrite`` so it never conflicts.
    """
    with transaction(conn):
        current = _current_row(conn, cmd.dashboard_id, cmd.org_id)
        old = get_dashboard_version(
            conn,
            GetDashboardVersionQuery(
                dashboard_id=cmd.dashboard_id, org_id=cmd.org_id, version=cmd.version
            ),
        )

        body = dict(old.data)
        body["id"] = current["id"]
        body["version"] = current["version"]

        restored, _ = apply_save(
            conn,
            SaveDashboardCommand(
                dashboard=body,
                org_id=cmd.org_id,
                user_id=cmd.user_id,
                overwrite=True,
                restored_from=old.version,
                message=f"Restored from version {old.version}",
                folder_id=current["folder_id"],
                is_folder=bool(current["is_folder"]),
                plugin_id=current["plugin_id"] or "",
            ),
        )

    logger.info(
        "dashboard restored id=%d from version=%d as version=%d",
        restored.id, cmd.version, restored.version,
    )
    return restored
