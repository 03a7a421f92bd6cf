"""Access-control grants on dashboards and folders, plus the user-group
membership table the search ACL filter joins against.

Adding a grant flags the dashboard ``has_acl`` so reads can filter on the
column alone; grants on a folder also flag every dashboard inside it.
"""

from __future__ import annotations

import sqlite3
from time import time
from typing import Optional

from dashstore.db.connection import transaction
from dashstore.db.models import DashboardAclItem
from dashstore.errors import DashboardNotFound, ValidationError

PERMISSION_VIEW = 1
PERMISSION_EDIT = 2
PERMISSION_ADMIN = 4


def _row_to_acl(row: sqlite3.Row) -> DashboardAclItem:
    return DashboardAclItem(
        id=row["id"],
        org_id=row["org_id"],
        dashboard_id=row["dashboard_id"],
        user_id=row["user_id"],
        user_group_id=row["user_group_id"],
        role=row["role"],
        permission=row["permission"],
        created=row["created"],
        updated=row["updated"],
    )


def add_dashboard_acl(
    conn: sqlite3.Connection,
    org_id: int,
    dashboard_id: int,
    user_id: Optional[int] = None,
    user_group_id: Optional[int] = None,
    role: Optional[str] = None,
    permission: int = PERMISSION_VIEW,
) -> DashboardAclItem:
    """Grant *permission* on a dashboard to exactly one user, group or role.

    Raises:
        ValidationError: Not exactly one grantee was given.
        DashboardNotFound: The dashboard does not exist in the org.
    """
    grantees = [g for g in (user_id, user_group_id, role) if g is not None]
    if len(grantees) != 1:
        raise ValidationError("An ACL item needs exactly one of user, group or role")

    now = int(time())
    with transaction(conn):
        target = conn.execute(
            "SELECT id FROM dashboard WHERE id = ? AND org_id = ?", (dashboard_id, org_id)
        ).fetchone()
        if target is None:
            raise DashboardNotFound()

        cursor = conn.execute(
            """
            INSERT INTO dashboard_acl
                (org_id, dashboard_id, user_id, user_group_id, role, permission, created, updated)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (org_id, dashboard_id, user_id, user_group_id, role, permission, now, now),
        )
        conn.execute(
            "UPDATE dashboard SET has_acl = 1 WHERE id = ? OR folder_id = ?",
            (dashboard_id, dashboard_id),
        )
        row = conn.execute(
            "SELECT * FROM dashboard_acl WHERE id = ?", (cursor.lastrowid,)
        ).fetchone()

    return _row_to_acl(row)


def get_dashboard_acl(conn: sqlite3.Connection, dashboard_id: int) -> list[DashboardAclItem]:
    """Return the grants placed directly on *dashboard_id*."""
    rows = conn.execute(
        "SELECT * FROM dashboard_acl WHERE dashboard_id = ? ORDER BY id", (dashboard_id,)
    ).fetchall()
    return [_row_to_acl(r) for r in rows]


def add_user_group_member(
    conn: sqlite3.Connection, org_id: int, user_group_id: int, user_id: int
) -> None:
    with transaction(conn):
        conn.execute(
            """
            INSERT OR IGNORE INTO user_group_member (org_id, user_group_id, user_id)
            VALUES (?, ?, ?)
            """,
            (org_id, user_group_id, user_id),
        )
