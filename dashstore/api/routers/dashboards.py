"""Dashboard REST endpoints.

Routes
------
POST   /dashboards/db                             Save (create or update) a dashboard
GET    /dashboards/db/{slug}                      Fetch a dashboard by slug
GET    /dashboards/id/{id}/slug                   Resolve a dashboard id to its slug
GET    /dashboards/tags                           Tag cloud for an org
GET    /dashboards/plugin/{plugin_id}             Dashboards provisioned by a plugin
DELETE /dashboards/{id}                           Delete a dashboard (folders cascade)
GET    /dashboards/{id}/versions                  Version history, newest first
GET    /dashboards/{id}/versions/{version}        One history entry
POST   /dashboards/{id}/restore                   Restore a history entry as the newest version
"""

from __future__ import annotations

import sqlite3
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dashstore.api.deps import get_db
from dashstore.db.dashboards import (
    delete_dashboard,
    get_dashboard,
    get_dashboard_slug_by_id,
    get_dashboard_tags,
    get_dashboards_by_plugin_id,
    save_dashboard,
)
from dashstore.db.models import (
    Dashboard,
    DashboardVersion,
    DeleteDashboardCommand,
    GetDashboardQuery,
    GetDashboardsByPluginIdQuery,
    GetDashboardSlugByIdQuery,
    GetDashboardTagsQuery,
    GetDashboardVersionQuery,
    GetDashboardVersionsQuery,
    RestoreDashboardVersionCommand,
    SaveDashboardCommand,
)
from dashstore.db.versions import (
    get_dashboard_version,
    get_dashboard_versions,
    restore_dashboard_version,
)
from dashstore.errors import (
    DashboardError,
    DashboardNotFound,
    DuplicateTitleError,
    ProtectedDashboardError,
    ValidationError,
    VersionConflict,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class SaveDashboardRequest(BaseModel):
    dashboard: dict[str, Any]
    org_id: int = 1
    user_id: int = 0
    overwrite: bool = False
    message: str = ""
    folder_id: int = 0
    is_folder: bool = False
    plugin_id: str = ""


class RestoreRequest(BaseModel):
    version: int = Field(..., gt=0)
    org_id: int = 1
    user_id: int = 0


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _meta_dict(dash: Dashboard) -> dict[str, Any]:
    return {
        "slug": dash.slug,
        "version": dash.version,
        "type": dash.kind.value,
        "folder_id": dash.folder_id,
        "is_folder": dash.is_folder,
        "has_acl": dash.has_acl,
        "plugin_id": dash.plugin_id,
        "created": dash.created,
        "updated": dash.updated,
        "created_by": dash.created_by,
        "updated_by": dash.updated_by,
    }


def _saved_dict(dash: Dashboard) -> dict[str, Any]:
    return {
        "status": "success",
        "id": dash.id,
        "slug": dash.slug,
        "version": dash.version,
        "url": f"/dashboard/db/{dash.slug}",
    }


def _version_dict(version: DashboardVersion, with_data: bool = False) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": version.id,
        "dashboard_id": version.dashboard_id,
        "parent_version": version.parent_version,
        "restored_from": version.restored_from,
        "version": version.version,
        "created": version.created,
        "created_by": version.created_by,
        "message": version.message,
    }
    if with_data:
        out["data"] = version.data
    return out


def _http_error(exc: DashboardError) -> HTTPException:
    """Translate a store error into the HTTP status the API reports for it."""
    if isinstance(exc, DashboardNotFound):
        return HTTPException(status_code=404, detail={"status": "not-found", "message": str(exc)})
    if isinstance(exc, VersionConflict):
        return HTTPException(
            status_code=412, detail={"status": "version-mismatch", "message": str(exc)}
        )
    if isinstance(exc, DuplicateTitleError):
        return HTTPException(status_code=412, detail={"status": "name-exists", "message": str(exc)})
    if isinstance(exc, ProtectedDashboardError):
        return HTTPException(
            status_code=412,
            detail={
                "status": "plugin-dashboard",
                "plugin_id": exc.plugin_id,
                "message": str(exc),
            },
        )
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail={"status": "invalid", "message": exc.reason})
    return HTTPException(status_code=500, detail={"status": "error", "message": str(exc)})


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/db")
def save(
    body: SaveDashboardRequest, conn: sqlite3.Connection = Depends(get_db)
) -> dict[str, Any]:
    """Create or update a dashboard."""
    cmd = SaveDashboardCommand(
        dashboard=body.dashboard,
        org_id=body.org_id,
        user_id=body.user_id,
        overwrite=body.overwrite,
        message=body.message,
        folder_id=body.folder_id,
        is_folder=body.is_folder,
        plugin_id=body.plugin_id,
    )
    try:
        dash = save_dashboard(conn, cmd)
    except DashboardError as exc:
        raise _http_error(exc) from exc
    return _saved_dict(dash)


@router.get("/tags")
def tags(
    conn: sqlite3.Connection = Depends(get_db), org_id: int = 1
) -> list[dict[str, Any]]:
    """Return every tag used in the org with its dashboard count."""
    items = get_dashboard_tags(conn, GetDashboardTagsQuery(org_id=org_id))
    return [{"term": i.term, "count": i.count} for i in items]


@router.get("/db/{slug}")
def get_by_slug(
    slug: str, conn: sqlite3.Connection = Depends(get_db), org_id: int = 1
) -> dict[str, Any]:
    """Fetch a dashboard body and its metadata by slug."""
    try:
        dash = get_dashboard(conn, GetDashboardQuery(org_id=org_id, slug=slug))
    except DashboardError as exc:
        raise _http_error(exc) from exc
    return {"dashboard": dash.data, "meta": _meta_dict(dash)}


@router.get("/id/{dashboard_id}/slug")
def slug_by_id(
    dashboard_id: int, conn: sqlite3.Connection = Depends(get_db)
) -> dict[str, Any]:
    try:
        slug = get_dashboard_slug_by_id(conn, GetDashboardSlugByIdQuery(id=dashboard_id))
    except DashboardError as exc:
        raise _http_error(exc) from exc
    return {"id": dashboard_id, "slug": slug}


@router.get("/plugin/{plugin_id}")
def by_plugin(
    plugin_id: str, conn: sqlite3.Connection = Depends(get_db), org_id: int = 1
) -> list[dict[str, Any]]:
    """List the dashboards a plugin has provisioned in the org."""
    dashes = get_dashboards_by_plugin_id(
        conn, GetDashboardsByPluginIdQuery(org_id=org_id, plugin_id=plugin_id)
    )
    return [{"id": d.id, "title": d.title, **_meta_dict(d)} for d in dashes]


@router.delete("/{dashboard_id}")
def remove(
    dashboard_id: int, conn: sqlite3.Connection = Depends(get_db), org_id: int = 1
) -> dict[str, Any]:
    """Delete a dashboard; deleting a folder removes everything inside it."""
    try:
        dash = delete_dashboard(conn, DeleteDashboardCommand(id=dashboard_id, org_id=org_id))
    except DashboardError as exc:
        raise _http_error(exc) from exc
    return {"title": dash.title, "message": f"Dashboard {dash.title} deleted"}


@router.get("/{dashboard_id}/versions")
def versions(
    dashboard_id: int,
    conn: sqlite3.Connection = Depends(get_db),
    org_id: int = 1,
    limit: int = 0,
    start: int = 0,
) -> list[dict[str, Any]]:
    query = GetDashboardVersionsQuery(
        dashboard_id=dashboard_id, org_id=org_id, limit=limit, start=start
    )
    try:
        items = get_dashboard_versions(conn, query)
    except DashboardError as exc:
        raise _http_error(exc) from exc
    return [_version_dict(v) for v in items]


@router.get("/{dashboard_id}/versions/{version}")
def version(
    dashboard_id: int,
    version: int,
    conn: sqlite3.Connection = Depends(get_db),
    org_id: int = 1,
) -> dict[str, Any]:
    query = GetDashboardVersionQuery(dashboard_id=dashboard_id, org_id=org_id, version=version)
    try:
        item = get_dashboard_version(conn, query)
    except DashboardError as exc:
        raise _http_error(exc) from exc
    return _version_dict(item, with_data=True)


@router.post("/{dashboard_id}/restore")
def restore(
    dashboard_id: int, body: RestoreRequest, conn: sqlite3.Connection = Depends(get_db)
) -> dict[str, Any]:
    """Re-save an earlier version as the newest one."""
    cmd = RestoreDashboardVersionCommand(
        dashboard_id=dashboard_id,
        org_id=body.org_id,
        version=body.version,
        user_id=body.user_id,
    )
    try:
        dash = restore_dashboard_version(conn, cmd)
    except DashboardError as exc:
        raise _http_error(exc) from exc
    return _saved_dict(dash)
