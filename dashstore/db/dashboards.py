"""Persistence for the ``dashboard`` table and its dependents.

Saving follows an optimistic-concurrency protocol: the caller's declared
version must match the stored one (unless ``overwrite`` is set), and the
``UPDATE`` is guarded by the version read at check time, so two concurrent
saves of the same version have exactly one winner.  Each successful save
bumps the version by one, appends a ``dashboard_version`` row and rewrites the
tag index, all inside a single transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from enum import Enum
from typing import Any, Callable, Optional

from dashstore.config import settings
from dashstore.db.alerts import delete_alert_definitions
from dashstore.db.connection import transaction
from dashstore.db.models import (
    Dashboard,
    DashboardTagCloudItem,
    DeleteDashboardCommand,
    GetDashboardQuery,
    GetDashboardsByPluginIdQuery,
    GetDashboardsQuery,
    GetDashboardSlugByIdQuery,
    GetDashboardTagsQuery,
    SaveDashboardCommand,
)
from dashstore.errors import (
    DashboardNotFound,
    DuplicateTitleError,
    ProtectedDashboardError,
    ValidationError,
    VersionConflict,
)
from dashstore.metrics import DASHBOARD_INSERTS

logger = logging.getLogger(__name__)

AlertCleanupHook = Callable[[sqlite3.Connection, int], Any]


class AlertCleanupPolicy(str, Enum):
    """What a failing alert-cleanup hook does to a dashboard delete."""

    SWALLOW = "swallow"
    PROPAGATE = "propagate"


# Per-dashboard dependents removed on delete, in order.  Every statement
# takes the dashboard id as its only parameter.
_DELETE_STATEMENTS = (
    "DELETE FROM dashboard_tag WHERE dashboard_id = ?",
    "DELETE FROM star WHERE dashboard_id = ?",
    "DELETE FROM dashboard WHERE id = ?",
    "DELETE FROM playlist_item WHERE type = 'dashboard_by_id' AND value = ?",
    "DELETE FROM dashboard_version WHERE dashboard_id = ?",
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_dashboard(row: sqlite3.Row) -> Dashboard:
    return Dashboard(
        id=row["id"],
        org_id=row["org_id"],
        slug=row["slug"],
        title=row["title"],
        version=row["version"],
        data=json.loads(row["data"] or "{}"),
        folder_id=row["folder_id"],
        is_folder=bool(row["is_folder"]),
        has_acl=bool(row["has_acl"]),
        plugin_id=row["plugin_id"] or "",
        created=row["created"],
        updated=row["updated"],
        created_by=row["created_by"] or 0,
        updated_by=row["updated_by"] or 0,
    )


def _get_by_id(conn: sqlite3.Connection, dash_id: int, org_id: int) -> Optional[Dashboard]:
    row = conn.execute(
        "SELECT * FROM dashboard WHERE id = ? AND org_id = ?", (dash_id, org_id)
    ).fetchone()
    return _row_to_dashboard(row) if row else None


def _get_by_slug(conn: sqlite3.Connection, org_id: int, slug: str) -> Optional[Dashboard]:
    row = conn.execute(
        "SELECT * FROM dashboard WHERE org_id = ? AND slug = ?", (org_id, slug)
    ).fetchone()
    return _row_to_dashboard(row) if row else None


def _set_has_acl(conn: sqlite3.Connection, dash: Dashboard) -> None:
    """Derive ``has_acl`` from the parent folder and the dashboard's own grants."""
    if dash.folder_id > 0:
        parent = conn.execute(
            "SELECT has_acl FROM dashboard WHERE id = ? AND org_id = ?",
            (dash.folder_id, dash.org_id),
        ).fetchone()
        if parent is not None and parent["has_acl"]:
            dash.has_acl = True

    if dash.id > 0:
        own = conn.execute(
            "SELECT 1 FROM dashboard_acl WHERE dashboard_id = ? LIMIT 1", (dash.id,)
        ).fetchone()
        if own is not None:
            dash.has_acl = True


def _insert_dashboard(conn: sqlite3.Connection, dash: Dashboard) -> int:
    dash.set_version(1)
    cursor = conn.execute(
        """
        INSERT INTO dashboard (
            version, slug, title, data, org_id, created, updated,
            updated_by, created_by, folder_id, is_folder, has_acl, plugin_id
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            dash.version,
            dash.slug,
            dash.title,
            dash.data_json(),
            dash.org_id,
            dash.created,
            dash.updated,
            dash.updated_by,
            dash.created_by,
            dash.folder_id,
            int(dash.is_folder),
            int(dash.has_acl),
            dash.plugin_id,
        ),
    )
    if cursor.rowcount == 0:
        return 0

    # The body mirrors its own id, which only exists after the insert.
    dash.id = int(cursor.lastrowid)
    dash.data["id"] = dash.id
    conn.execute(
        "UPDATE dashboard SET data = ? WHERE id = ?", (dash.data_json(), dash.id)
    )
    return cursor.rowcount


def _update_dashboard(conn: sqlite3.Connection, dash: Dashboard, parent_version: int) -> int:
    dash.set_version(parent_version + 1)
    dash.data["id"] = dash.id

    updates: dict[str, Any] = {
        "version": dash.version,
        "slug": dash.slug,
        "title": dash.title,
        "data": dash.data_json(),
        "updated": dash.updated,
        "updated_by": dash.updated_by,
        # always written, even when unchanged
        "folder_id": dash.folder_id,
        "has_acl": int(dash.has_acl),
    }
    # Unset flags on the command leave the stored values alone.
    if dash.is_folder:
        updates["is_folder"] = 1
    if dash.plugin_id:
        updates["plugin_id"] = dash.plugin_id

    set_clause = ", ".join(f"{col} = ?" for col in updates)
    values = list(updates.values()) + [dash.id, dash.org_id, parent_version]
    cursor = conn.execute(
        f"UPDATE dashboard SET {set_clause} WHERE id = ? AND org_id = ? AND version = ?",  # noqa: S608
        values,
    )
    return cursor.rowcount


def _insert_version(
    conn: sqlite3.Connection,
    dash: Dashboard,
    parent_version: int,
    cmd: SaveDashboardCommand,
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO dashboard_version (
            dashboard_id, parent_version, restored_from, version,
            created, created_by, message, data
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            dash.id,
            parent_version,
            cmd.restored_from,
            dash.version,
            int(time.time()),
            dash.updated_by,
            cmd.message,
            dash.data_json(),
        ),
    )
    return cursor.rowcount


def _replace_tags(conn: sqlite3.Connection, dashboard_id: int, tags: list[str]) -> None:
    conn.execute("DELETE FROM dashboard_tag WHERE dashboard_id = ?", (dashboard_id,))
    if tags:
        conn.executemany(
            "INSERT INTO dashboard_tag (dashboard_id, term) VALUES (?, ?)",
            [(dashboard_id, term) for term in tags],
        )


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------

def apply_save(conn: sqlite3.Connection, cmd: SaveDashboardCommand) -> tuple[Dashboard, bool]:
    """Run the save protocol on a transaction the caller already holds.

    Returns:
        The stored dashboard and whether it was newly inserted.

    Raises:
        Same as :func:`save_dashboard`.
    """
    dash = cmd.get_dashboard_model()
    if not dash.slug:
        raise ValidationError("Dashboard title cannot be empty")

    if dash.id > 0:
        existing = _get_by_id(conn, dash.id, dash.org_id)
        if existing is None:
            raise DashboardNotFound()

        # someone else has written in between
        if dash.version != existing.version:
            if not cmd.overwrite:
                logger.debug(
                    "version conflict on dashboard id=%d: declared=%d stored=%d",
                    dash.id, dash.version, existing.version,
                )
                raise VersionConflict()
            dash.version = existing.version

        if existing.plugin_id and not cmd.overwrite:
            raise ProtectedDashboardError(existing.plugin_id)

    same_title = _get_by_slug(conn, dash.org_id, dash.slug)
    if same_title is not None and same_title.id != dash.id:
        if not cmd.overwrite:
            raise DuplicateTitleError()
        dash.id = same_title.id
        dash.version = same_title.version

    _set_has_acl(conn, dash)

    parent_version = dash.version
    is_new = dash.id == 0
    if is_new:
        affected = _insert_dashboard(conn, dash)
    else:
        affected = _update_dashboard(conn, dash, parent_version)
    if affected == 0:
        raise DashboardNotFound()

    if _insert_version(conn, dash, parent_version, cmd) == 0:
        raise DashboardNotFound()

    _replace_tags(conn, dash.id, dash.tags)

    result = _get_by_id(conn, dash.id, dash.org_id)
    if result is None:
        raise DashboardNotFound()
    return result, is_new


def save_dashboard(conn: sqlite3.Connection, cmd: SaveDashboardCommand) -> Dashboard:
    """Create or update a dashboard and return the stored result.

    Args:
        conn: Open DB connection, not inside a transaction; the save runs in
            its own.
        cmd: The save command.  ``overwrite`` bypasses the version check, the
            plugin guard and slug collisions (adopting the colliding row).

    Raises:
        DashboardNotFound: The id does not exist in the org, or the row
            changed between the check and the write.
        VersionConflict: The declared version is stale.
        ProtectedDashboardError: The dashboard is plugin-owned.
        DuplicateTitleError: Another dashboard in the org has the same slug.
        ValidationError: The body has no title, or a non-integer id/version.
    """
    with transaction(conn):
        result, is_new = apply_save(conn, cmd)

    if is_new:
        DASHBOARD_INSERTS.inc()
    logger.info(
        "dashboard saved id=%d org_id=%d version=%d", result.id, result.org_id, result.version
    )
    return result


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

def _run_alert_cleanup(
    conn: sqlite3.Connection,
    dashboard_ids: list[int],
    hook: AlertCleanupHook,
    policy: AlertCleanupPolicy,
) -> None:
    """Run *hook* per dashboard inside a savepoint, applying *policy* on failure."""
    conn.execute("SAVEPOINT alert_cleanup")
    try:
        for dashboard_id in dashboard_ids:
            hook(conn, dashboard_id)
    except Exception:
        conn.execute("ROLLBACK TO SAVEPOINT alert_cleanup")
        conn.execute("RELEASE SAVEPOINT alert_cleanup")
        if policy is AlertCleanupPolicy.PROPAGATE:
            raise
        logger.warning(
            "alert cleanup failed for dashboards %s; keeping the delete",
            dashboard_ids,
            exc_info=True,
        )
    else:
        conn.execute("RELEASE SAVEPOINT alert_cleanup")


def delete_dashboard(
    conn: sqlite3.Connection,
    cmd: DeleteDashboardCommand,
    alert_cleanup: Optional[AlertCleanupHook] = None,
    policy: Optional[AlertCleanupPolicy] = None,
) -> Dashboard:
    """Delete a dashboard, its dependents and, for a folder, its contents.

    Args:
        conn: Open DB connection.
        cmd: Identifies the dashboard by ``(id, org_id)``.
        alert_cleanup: Hook called as ``hook(conn, dashboard_id)`` for every
            removed dashboard.  Defaults to
            :func:`~dashstore.db.alerts.delete_alert_definitions`.
        policy: Failure policy for the hook.  Defaults to
            ``settings.alert_cleanup_policy``.

    Returns:
        The dashboard as it was before deletion.

    Raises:
        DashboardNotFound: No dashboard with that id in the org.
    """
    hook = alert_cleanup or delete_alert_definitions
    policy = AlertCleanupPolicy(policy or settings.alert_cleanup_policy)

    with transaction(conn):
        dash = _get_by_id(conn, cmd.id, cmd.org_id)
        if dash is None:
            raise DashboardNotFound()

        child_ids = [
            r["id"]
            for r in conn.execute(
                "SELECT id FROM dashboard WHERE folder_id = ? AND org_id = ?",
                (dash.id, dash.org_id),
            ).fetchall()
        ]
        removed = [dash.id, *child_ids]

        for dashboard_id in removed:
            for sql in _DELETE_STATEMENTS:
                conn.execute(sql, (dashboard_id,))

        _run_alert_cleanup(conn, removed, hook, policy)

    logger.info(
        "dashboard deleted id=%d org_id=%d children=%d", dash.id, dash.org_id, len(child_ids)
    )
    return dash


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_dashboard(conn: sqlite3.Connection, query: GetDashboardQuery) -> Dashboard:
    """Fetch one dashboard by id or slug within an org.

    The returned body always carries the row id under ``"id"``.
    """
    if query.id:
        dash = _get_by_id(conn, query.id, query.org_id)
    elif query.slug:
        dash = _get_by_slug(conn, query.org_id, query.slug)
    else:
        raise ValidationError("Dashboard id or slug is required")

    if dash is None:
        raise DashboardNotFound()

    dash.data["id"] = dash.id
    return dash


def get_dashboards(conn: sqlite3.Connection, query: GetDashboardsQuery) -> list[Dashboard]:
    """Return the dashboards whose ids are in ``query.dashboard_ids``."""
    if not query.dashboard_ids:
        raise ValidationError("Dashboard ids are required")

    placeholders = ",".join("?" for _ in query.dashboard_ids)
    rows = conn.execute(
        f"SELECT * FROM dashboard WHERE id IN ({placeholders}) ORDER BY id",  # noqa: S608
        list(query.dashboard_ids),
    ).fetchall()
    return [_row_to_dashboard(r) for r in rows]


def get_dashboards_by_plugin_id(
    conn: sqlite3.Connection, query: GetDashboardsByPluginIdQuery
) -> list[Dashboard]:
    """Return every dashboard in the org provisioned by ``query.plugin_id``."""
    rows = conn.execute(
        "SELECT * FROM dashboard WHERE org_id = ? AND plugin_id = ? ORDER BY id",
        (query.org_id, query.plugin_id),
    ).fetchall()
    return [_row_to_dashboard(r) for r in rows]


def get_dashboard_tags(
    conn: sqlite3.Connection, query: GetDashboardTagsQuery
) -> list[DashboardTagCloudItem]:
    """Return each tag term used in the org with the number of dashboards using it."""
    rows = conn.execute(
        """
        SELECT dashboard_tag.term AS term, COUNT(*) AS count
        FROM   dashboard
        JOIN   dashboard_tag ON dashboard_tag.dashboard_id = dashboard.id
        WHERE  dashboard.org_id = ?
        GROUP  BY dashboard_tag.term
        ORDER  BY dashboard_tag.term
        """,
        (query.org_id,),
    ).fetchall()
    return [DashboardTagCloudItem(term=r["term"], count=r["count"]) for r in rows]


def get_dashboard_slug_by_id(conn: sqlite3.Connection, query: GetDashboardSlugByIdQuery) -> str:
    row = conn.execute("SELECT slug FROM dashboard WHERE id = ?", (query.id,)).fetchone()
    if row is None:
        raise DashboardNotFound()
    return row["slug"]
