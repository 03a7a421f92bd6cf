"""Dashboard commands: save, fetch, delete, search, history and access grants."""

import json
from pathlib import Path
from typing import List, Optional

import typer

from dashstore.db import get_connection, init_db
from dashstore.db.acl import (
    PERMISSION_ADMIN,
    PERMISSION_EDIT,
    PERMISSION_VIEW,
    add_dashboard_acl,
    get_dashboard_acl,
)
from dashstore.db.dashboards import (
    delete_dashboard,
    get_dashboard,
    get_dashboard_tags,
    save_dashboard,
)
from dashstore.db.models import (
    DeleteDashboardCommand,
    FindPersistedDashboardsQuery,
    GetDashboardQuery,
    GetDashboardTagsQuery,
    GetDashboardVersionsQuery,
    RestoreDashboardVersionCommand,
    SaveDashboardCommand,
)
from dashstore.db.search import search_dashboards
from dashstore.db.stars import star_dashboard, unstar_dashboard
from dashstore.db.versions import get_dashboard_versions, restore_dashboard_version
from dashstore.errors import DashboardError, VersionConflict
from cli.context import load_context

dashboard_app = typer.Typer(help="Save, fetch and search dashboards.", no_args_is_help=True)


@dashboard_app.command("save")
def dashboard_save(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Dashboard JSON file."),
    overwrite: bool = typer.Option(False, "--overwrite", help="Ignore version and title conflicts."),
    message: str = typer.Option("", "--message", "-m", help="Change message for the history."),
    folder_id: int = typer.Option(0, "--folder-id", help="Parent folder id (0 = root)."),
    folder: bool = typer.Option(False, "--folder", help="Save as a folder."),
    plugin_id: str = typer.Option("", "--plugin-id", help="Owning plugin id."),
) -> None:
    """Create or update a dashboard from a JSON file."""
    ctx = load_context()
    try:
        body = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        typer.echo(f"❌ {path} is not valid JSON: {e}")
        raise typer.Exit(code=1)

    conn = get_connection()
    init_db(conn)

    try:
        dash = save_dashboard(
            conn,
            SaveDashboardCommand(
                dashboard=body,
                org_id=ctx.org_id,
                user_id=ctx.user_id,
                overwrite=overwrite,
                message=message,
                folder_id=folder_id,
                is_folder=folder,
                plugin_id=plugin_id,
            ),
        )
        typer.echo(f"✅ Saved {dash.title!r} id={dash.id} slug={dash.slug} version={dash.version}")
    except VersionConflict as e:
        typer.echo(f"❌ {e}. Fetch the latest version or pass --overwrite.")
        raise typer.Exit(code=1)
    except DashboardError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


@dashboard_app.command("get")
def dashboard_get(
    slug: str = typer.Argument(..., help="Dashboard slug."),
) -> None:
    """Print a dashboard body as JSON."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        dash = get_dashboard(conn, GetDashboardQuery(org_id=ctx.org_id, slug=slug))
        typer.echo(json.dumps(dash.data, indent=2))
    except DashboardError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


@dashboard_app.command("delete")
def dashboard_delete(
    dashboard_id: int = typer.Argument(..., help="Dashboard id."),
) -> None:
    """Delete a dashboard (a folder takes its contents with it)."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        dash = delete_dashboard(conn, DeleteDashboardCommand(id=dashboard_id, org_id=ctx.org_id))
        typer.echo(f"🗑️ Deleted {dash.title!r}")
    except DashboardError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


@dashboard_app.command("tags")
def dashboard_tags() -> None:
    """List tags used in the active org with their counts."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        items = get_dashboard_tags(conn, GetDashboardTagsQuery(org_id=ctx.org_id))
    finally:
        conn.close()

    if not items:
        typer.echo("No tags found.")
        return
    for item in items:
        typer.echo(f"  {item.term}\t{item.count}")


@dashboard_app.command("search")
def dashboard_search(
    query: str = typer.Option("", "--query", "-q", help="Title substring."),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Required tag (repeatable)."),
    starred: bool = typer.Option(False, "--starred", help="Only starred dashboards."),
    type: str = typer.Option("", "--type", help="dash-db | dash-folder"),
    folder_id: int = typer.Option(0, "--folder-id", help="Only dashboards in this folder."),
    limit: int = typer.Option(0, "--limit", help="Maximum number of hits."),
) -> None:
    """Search dashboards visible to the active user."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        hits = search_dashboards(
            conn,
            FindPersistedDashboardsQuery(
                signed_in_user=ctx.signed_in_user(),
                title=query,
                tags=tag or [],
                is_starred=starred,
                type=type,
                folder_id=folder_id,
                limit=limit,
            ),
        )
    finally:
        conn.close()

    if not hits:
        typer.echo("No dashboards found.")
        return
    for hit in hits:
        icon = "📁" if hit.type.value == "dash-folder" else "📊"
        tags = f"  [{', '.join(hit.tags)}]" if hit.tags else ""
        typer.echo(f"{icon} {hit.id}\t{hit.title}\t{hit.uri}{tags}")


@dashboard_app.command("versions")
def dashboard_versions(
    dashboard_id: int = typer.Argument(..., help="Dashboard id."),
    limit: int = typer.Option(0, "--limit", help="Maximum number of versions."),
) -> None:
    """Show the version history of a dashboard, newest first."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        items = get_dashboard_versions(
            conn,
            GetDashboardVersionsQuery(dashboard_id=dashboard_id, org_id=ctx.org_id, limit=limit),
        )
    except DashboardError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()

    for v in items:
        restored = f" (restored from {v.restored_from})" if v.restored_from else ""
        typer.echo(f"  v{v.version}\tparent={v.parent_version}\t{v.message}{restored}")


@dashboard_app.command("restore")
def dashboard_restore(
    dashboard_id: int = typer.Argument(..., help="Dashboard id."),
    version: int = typer.Argument(..., help="Version to restore."),
) -> None:
    """Restore an earlier version as the newest one."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        dash = restore_dashboard_version(
            conn,
            RestoreDashboardVersionCommand(
                dashboard_id=dashboard_id,
                org_id=ctx.org_id,
                version=version,
                user_id=ctx.user_id,
            ),
        )
        typer.echo(f"✅ Restored version {version} of {dash.title!r} as version {dash.version}")
    except DashboardError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


@dashboard_app.command("star")
def dashboard_star(
    dashboard_id: int = typer.Argument(..., help="Dashboard id."),
    remove: bool = typer.Option(False, "--remove", help="Unstar instead."),
) -> None:
    """Star (or with --remove, unstar) a dashboard for the active user."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        if remove:
            unstar_dashboard(conn, ctx.user_id, dashboard_id)
            typer.echo(f"Unstarred dashboard {dashboard_id}")
        else:
            star_dashboard(conn, ctx.user_id, dashboard_id)
            typer.echo(f"⭐ Starred dashboard {dashboard_id}")
    finally:
        conn.close()


_PERMISSIONS = {"view": PERMISSION_VIEW, "edit": PERMISSION_EDIT, "admin": PERMISSION_ADMIN}


@dashboard_app.command("grant")
def dashboard_grant(
    dashboard_id: int = typer.Argument(..., help="Dashboard or folder id."),
    user: Optional[int] = typer.Option(None, "--user", help="Grant to a user id."),
    group: Optional[int] = typer.Option(None, "--group", help="Grant to a user group id."),
    role: Optional[str] = typer.Option(None, "--role", help="Grant to an org role."),
    permission: str = typer.Option("view", "--permission", help="view | edit | admin"),
) -> None:
    """Restrict a dashboard (or a whole folder) to the given grantee."""
    if permission not in _PERMISSIONS:
        typer.echo(f"❌ Unknown permission {permission!r}. Use: view | edit | admin")
        raise typer.Exit(code=1)

    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        item = add_dashboard_acl(
            conn,
            ctx.org_id,
            dashboard_id,
            user_id=user,
            user_group_id=group,
            role=role,
            permission=_PERMISSIONS[permission],
        )
        typer.echo(f"🔒 Grant {item.id} added to dashboard {dashboard_id}")
    except DashboardError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


@dashboard_app.command("acl")
def dashboard_acl(
    dashboard_id: int = typer.Argument(..., help="Dashboard or folder id."),
) -> None:
    """List the grants placed directly on a dashboard."""
    conn = get_connection()
    init_db(conn)

    try:
        items = get_dashboard_acl(conn, dashboard_id)
    finally:
        conn.close()

    if not items:
        typer.echo("No grants; visible to everyone in the org.")
        return
    names = {v: k for k, v in _PERMISSIONS.items()}
    for item in items:
        if item.user_id is not None:
            who = f"user {item.user_id}"
        elif item.user_group_id is not None:
            who = f"group {item.user_group_id}"
        else:
            who = f"role {item.role}"
        typer.echo(f"  {who}\t{names.get(item.permission, item.permission)}")
