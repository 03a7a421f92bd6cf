"""Runtime settings for dashstore.

Each field falls back to an environment variable, and a `.env` next to the
package (at the repository root) is read on import without clobbering
variables that are already set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_REPO_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_REPO_ROOT / ".env", override=False)

_CLEANUP_POLICIES = ("swallow", "propagate")


def _env_path(name: str, default: Path) -> Path:
    return Path(os.environ.get(name) or default).expanduser()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: _env_path("DASHSTORE_WORKSPACE", Path.home() / ".dashstore")
    )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    # Hard cap on hits per search; a caller's smaller limit still applies.
    search_limit: int = field(default_factory=lambda: _env_int("SEARCH_LIMIT", 1000))

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------
    # "swallow" keeps a dashboard delete when alert cleanup fails,
    # "propagate" rolls the delete back.
    alert_cleanup_policy: str = field(
        default_factory=lambda: os.environ.get("ALERT_CLEANUP_POLICY", "swallow").lower()
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))

    # ------------------------------------------------------------------
    # CLI
    # ------------------------------------------------------------------
    cli_config_dir: Path = field(
        default_factory=lambda: _env_path("DASHSTORE_CLI_DIR", Path.home() / ".dashstore_cli")
    )

    def __post_init__(self) -> None:
        if self.alert_cleanup_policy not in _CLEANUP_POLICIES:
            raise ValueError(
                f"ALERT_CLEANUP_POLICY must be one of {_CLEANUP_POLICIES}, "
                f"got {self.alert_cleanup_policy!r}"
            )

    @property
    def db_path(self) -> Path:
        """SQLite file holding every dashboard table."""
        return self.workspace_dir / "dashboards.db"

    @property
    def schema_path(self) -> Path:
        """DDL shipped inside the package as ``dashstore/db/schema.sql``."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    def ensure_workspace(self) -> None:
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Shared instance; tests monkeypatch its attributes.
settings = Settings()
