"""Dashboard search endpoint.

Routes
------
GET /search?org_id=1&user_id=7&org_role=Viewer&query=cpu&tag=prod&tag=db&starred=true
"""

from __future__ import annotations

import sqlite3
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query

from dashstore.api.deps import get_db
from dashstore.db.models import FindPersistedDashboardsQuery, SearchHit, SignedInUser
from dashstore.db.search import search_dashboards

router = APIRouter()


def _hit_dict(hit: SearchHit) -> dict[str, Any]:
    return {
        "id": hit.id,
        "title": hit.title,
        "uri": hit.uri,
        "type": hit.type.value,
        "tags": hit.tags,
        "folder_id": hit.folder_id,
        "folder_title": hit.folder_title,
        "folder_slug": hit.folder_slug,
    }


@router.get("")
def search(
    conn: sqlite3.Connection = Depends(get_db),
    org_id: int = 1,
    user_id: int = 0,
    org_role: Literal["Admin", "Editor", "Viewer"] = "Viewer",
    query: str = "",
    tag: list[str] = Query([]),
    starred: bool = False,
    dashboard_ids: list[int] = Query([]),
    type: Literal["", "dash-db", "dash-folder"] = "",
    folder_id: int = 0,
    limit: int = 0,
) -> list[dict[str, Any]]:
    """Search dashboards the caller may see.

    Args:
        query: Title substring.
        tag: Repeatable; a hit must carry every given tag.
        starred: Only dashboards starred by ``user_id``.
        type: ``dash-db`` for dashboards, ``dash-folder`` for folders.
        limit: Result cap; 0 or anything above the configured cap uses the cap.
    """
    hits = search_dashboards(
        conn,
        FindPersistedDashboardsQuery(
            signed_in_user=SignedInUser(user_id=user_id, org_id=org_id, org_role=org_role),
            title=query,
            tags=tag,
            is_starred=starred,
            dashboard_ids=dashboard_ids,
            type=type,
            folder_id=folder_id,
            limit=limit,
        ),
    )
    return [_hit_dict(h) for h in hits]
