"""Filtered dashboard search with ACL restriction.

Every filter is an explicit optional field on
:class:`~dashstore.db.models.FindPersistedDashboardsQuery` and becomes one
parameterized predicate in :class:`SearchQueryBuilder`.  Predicates carry
their own parameters, so binding order always matches placeholder order.
"""

from __future__ import annotations

import re
import sqlite3
from typing import Any

from dashstore.config import settings
from dashstore.db.models import (
    ROLE_ADMIN,
    DashboardKind,
    FindPersistedDashboardsQuery,
    SearchHit,
    SignedInUser,
)

_LIKE_SPECIAL = re.compile(r"[\\%_]")

# Dashboards visible to a user through a grant on the dashboard itself or on
# its folder, matched by user id, group membership or org role.
_ALLOWED_DASHBOARDS = """
    dashboard.has_acl = 0 OR dashboard.id IN (
        SELECT d.id
        FROM   dashboard AS d
        JOIN   dashboard_acl AS da
               ON da.dashboard_id = d.id OR da.dashboard_id = d.folder_id
        LEFT   JOIN user_group_member AS ugm
               ON ugm.user_group_id = da.user_group_id AND ugm.user_id = ?
        WHERE  d.has_acl = 1
          AND  d.org_id = ?
          AND  (da.user_id = ? OR ugm.user_id IS NOT NULL OR da.role = ?)
    )
"""


class SearchQueryBuilder:
    """Accumulates ``WHERE`` predicates over the ``dashboard`` table."""

    def __init__(self, org_id: int) -> None:
        self._predicates: list[tuple[str, list[Any]]] = []
        self._limit = settings.search_limit
        self.where("dashboard.org_id = ?", org_id)

    def where(self, clause: str, *params: Any) -> SearchQueryBuilder:
        self._predicates.append((clause, list(params)))
        return self

    def with_tags(self, tags: list[str]) -> SearchQueryBuilder:
        """Keep dashboards carrying *every* tag in *tags*."""
        terms = list(dict.fromkeys(tags))
        if terms:
            placeholders = ",".join("?" for _ in terms)
            self.where(
                f"""dashboard.id IN (
                    SELECT dashboard_id FROM dashboard_tag
                    WHERE  term IN ({placeholders})
                    GROUP  BY dashboard_id
                    HAVING COUNT(DISTINCT term) = ?
                )""",
                *terms,
                len(terms),
            )
        return self

    def with_title(self, title: str) -> SearchQueryBuilder:
        """Substring match; ``%`` and ``_`` in *title* match literally."""
        if title:
            escaped = _LIKE_SPECIAL.sub(r"\\\g<0>", title)
            self.where("dashboard.title LIKE ? ESCAPE '\\'", f"%{escaped}%")
        return self

    def starred_by(self, user_id: int) -> SearchQueryBuilder:
        self.where(
            "EXISTS (SELECT 1 FROM star WHERE star.dashboard_id = dashboard.id AND star.user_id = ?)",
            user_id,
        )
        return self

    def with_ids(self, dashboard_ids: list[int]) -> SearchQueryBuilder:
        if dashboard_ids:
            placeholders = ",".join("?" for _ in dashboard_ids)
            self.where(f"dashboard.id IN ({placeholders})", *dashboard_ids)
        return self

    def with_type(self, hit_type: str) -> SearchQueryBuilder:
        if hit_type == DashboardKind.FOLDER.value:
            self.where("dashboard.is_folder = 1")
        elif hit_type == DashboardKind.ENTRY.value:
            self.where("dashboard.is_folder = 0")
        return self

    def in_folder(self, folder_id: int) -> SearchQueryBuilder:
        if folder_id > 0:
            self.where("dashboard.folder_id = ?", folder_id)
        return self

    def visible_to(self, user: SignedInUser) -> SearchQueryBuilder:
        if user.org_role != ROLE_ADMIN:
            self.where(
                f"({_ALLOWED_DASHBOARDS})",
                user.user_id,
                user.org_id,
                user.user_id,
                user.org_role,
            )
        return self

    def limit(self, limit: int) -> SearchQueryBuilder:
        """Cap results at *limit*, never above ``settings.search_limit``."""
        if 0 < limit < settings.search_limit:
            self._limit = limit
        return self

    def build(self) -> tuple[str, list[Any]]:
        """Return ``(sql, params)`` yielding one row per (dashboard, tag)."""
        clauses = " AND ".join(clause for clause, _ in self._predicates)
        params = [p for _, clause_params in self._predicates for p in clause_params]
        params.append(self._limit)

        sql = f"""
            SELECT dashboard.id,
                   dashboard.title,
                   dashboard.slug,
                   dashboard_tag.term,
                   dashboard.is_folder,
                   dashboard.folder_id,
                   folder.slug  AS folder_slug,
                   folder.title AS folder_title
            FROM (
                SELECT dashboard.id, dashboard.title
                FROM   dashboard
                WHERE  {clauses}
                ORDER  BY dashboard.title ASC, dashboard.id ASC
                LIMIT  ?
            ) AS ids
            JOIN      dashboard ON dashboard.id = ids.id
            LEFT JOIN dashboard AS folder ON folder.id = dashboard.folder_id
            LEFT JOIN dashboard_tag ON dashboard_tag.dashboard_id = dashboard.id
            ORDER BY dashboard.title ASC, dashboard.id ASC, dashboard_tag.id ASC
        """  # noqa: S608
        return sql, params


def _fold_hits(rows: list[sqlite3.Row]) -> list[SearchHit]:
    """Merge (dashboard, tag) rows into one hit per dashboard."""
    hits: dict[int, SearchHit] = {}
    for row in rows:
        hit = hits.get(row["id"])
        if hit is None:
            hit = SearchHit(
                id=row["id"],
                title=row["title"],
                uri="db/" + row["slug"],
                type=DashboardKind.FOLDER if row["is_folder"] else DashboardKind.ENTRY,
                folder_id=row["folder_id"],
                folder_title=row["folder_title"] or "",
                folder_slug=row["folder_slug"] or "",
            )
            hits[row["id"]] = hit
        if row["term"]:
            hit.tags.append(row["term"])
    return list(hits.values())


def search_dashboards(
    conn: sqlite3.Connection, query: FindPersistedDashboardsQuery
) -> list[SearchHit]:
    """Return the dashboards matching *query* that its user may see, by title."""
    user = query.signed_in_user
    builder = (
        SearchQueryBuilder(user.org_id)
        .with_tags(query.tags)
        .with_title(query.title)
        .with_ids(query.dashboard_ids)
        .with_type(query.type)
        .in_folder(query.folder_id)
        .visible_to(user)
        .limit(query.limit)
    )
    if query.is_starred:
        builder.starred_by(user.user_id)

    sql, params = builder.build()
    return _fold_hits(conn.execute(sql, params).fetchall())
