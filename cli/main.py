"""dashstore CLI: entry-point for local dashboard store operations.

Usage:
    python cli/main.py --help

Sub-command groups:
    db         → schema setup
    context    → which org / user / role the CLI acts as
    dashboard  → save, get, delete, search, versions
    alert      → evaluate threshold conditions
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from dashstore.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from typing import Optional

import typer

from dashstore.config import settings
from dashstore.db import get_connection, init_db
from dashstore.db.migrations import current_version
from dashstore.db.models import ROLE_ADMIN, ROLE_EDITOR, ROLE_VIEWER
from dashstore.log import configure_logging
from cli.commands.alert import alert_app
from cli.commands.dashboard import dashboard_app
from cli.context import load_context, save_context

app = typer.Typer(
    name="dashstore",
    help="dashstore CLI.",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    configure_logging(settings.log_level)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Create the dashboard tables and apply pending migrations."""
    conn = get_connection()
    init_db(conn)
    version = current_version(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path} (schema v{version})")


# ---------------------------------------------------------------------------
# Context commands
# ---------------------------------------------------------------------------
context_app = typer.Typer(help="Active org / user identity.", no_args_is_help=True)
app.add_typer(context_app, name="context")

_ROLES = (ROLE_ADMIN, ROLE_EDITOR, ROLE_VIEWER)


@context_app.command("show")
def context_show() -> None:
    """Print the identity the CLI currently acts as."""
    ctx = load_context()
    typer.echo(f"org_id={ctx.org_id}  user_id={ctx.user_id}  role={ctx.org_role}")


@context_app.command("set")
def context_set(
    org_id: Optional[int] = typer.Option(None, "--org-id", help="Active org."),
    user_id: Optional[int] = typer.Option(None, "--user-id", help="Acting user."),
    role: Optional[str] = typer.Option(None, "--role", help="Admin | Editor | Viewer"),
) -> None:
    """Change the active org, user or role."""
    ctx = load_context()
    if role is not None:
        if role not in _ROLES:
            typer.echo(f"❌ Unknown role {role!r}. Use: {' | '.join(_ROLES)}")
            raise typer.Exit(code=1)
        ctx.org_role = role
    if org_id is not None:
        ctx.org_id = org_id
    if user_id is not None:
        ctx.user_id = user_id
    save_context(ctx)
    typer.echo(f"✅ org_id={ctx.org_id}  user_id={ctx.user_id}  role={ctx.org_role}")


app.add_typer(dashboard_app, name="dashboard")
app.add_typer(alert_app, name="alert")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
