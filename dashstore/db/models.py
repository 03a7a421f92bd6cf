"""Dataclass models representing DB rows, commands and queries.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from dashstore.errors import ValidationError

ROLE_ADMIN = "Admin"
ROLE_EDITOR = "Editor"
ROLE_VIEWER = "Viewer"

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def _body_int(body: dict[str, Any], key: str) -> int:
    """Read an integer field of a dashboard body; absent or empty is 0."""
    raw = body.get(key)
    if raw is None or raw == "":
        return 0
    if isinstance(raw, bool):
        raise ValidationError(f"Dashboard {key} must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Dashboard {key} must be an integer") from None


def slugify_title(title: str) -> str:
    """Return the URL-safe slug for a dashboard *title*."""
    return _SLUG_INVALID.sub("-", title.strip().lower()).strip("-")


class DashboardKind(str, Enum):
    """Domain-level variant for rows of the shared ``dashboard`` table."""

    FOLDER = "dash-folder"
    ENTRY = "dash-db"


@dataclass
class Dashboard:
    id: int
    org_id: int
    slug: str
    title: str
    version: int
    data: dict[str, Any]
    folder_id: int = 0
    is_folder: bool = False
    has_acl: bool = False
    plugin_id: str = ""
    created: int = 0
    updated: int = 0
    created_by: int = 0
    updated_by: int = 0

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Dashboard:
        """Build an unsaved model from a dashboard body.

        A body without an ``id`` is a new dashboard; its version mirror is
        reset to 0.
        """
        body = dict(data)
        now = int(time.time())
        title = str(body.get("title") or "")

        dash_id = _body_int(body, "id")
        if dash_id == 0:
            body.pop("id", None)
            body["version"] = 0

        return cls(
            id=dash_id,
            org_id=0,
            slug=slugify_title(title),
            title=title,
            version=_body_int(body, "version"),
            data=body,
            created=now,
            updated=now,
        )

    @property
    def kind(self) -> DashboardKind:
        return DashboardKind.FOLDER if self.is_folder else DashboardKind.ENTRY

    @property
    def tags(self) -> list[str]:
        """Distinct tag terms from the body, in first-seen order."""
        raw = self.data.get("tags")
        if not isinstance(raw, list):
            return []
        seen: set[str] = set()
        terms: list[str] = []
        for term in raw:
            if not isinstance(term, str) or not term or term in seen:
                continue
            seen.add(term)
            terms.append(term)
        return terms

    def set_version(self, version: int) -> None:
        """Set the row version and its mirror inside the body together."""
        self.version = version
        self.data["version"] = version

    def data_json(self) -> str:
        """Serialise the body to a JSON string for storage."""
        return json.dumps(self.data)


@dataclass
class DashboardVersion:
    id: int
    dashboard_id: int
    parent_version: int
    restored_from: int
    version: int
    created: int
    created_by: int
    message: str
    data: dict[str, Any]


@dataclass
class DashboardTagCloudItem:
    term: str
    count: int


@dataclass
class DashboardAclItem:
    id: int
    org_id: int
    dashboard_id: int
    user_id: Optional[int]
    user_group_id: Optional[int]
    role: Optional[str]
    permission: int
    created: int
    updated: int


@dataclass
class Alert:
    id: int
    org_id: int
    dashboard_id: int
    panel_id: int
    name: str
    settings: dict[str, Any]


@dataclass
class SignedInUser:
    user_id: int
    org_id: int
    org_role: str = ROLE_VIEWER


@dataclass
class SearchHit:
    id: int
    title: str
    uri: str
    type: DashboardKind
    folder_id: int = 0
    folder_title: str = ""
    folder_slug: str = ""
    tags: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Commands and queries
# ---------------------------------------------------------------------------

@dataclass
class SaveDashboardCommand:
    dashboard: dict[str, Any]
    org_id: int
    user_id: int = 0
    overwrite: bool = False
    restored_from: int = 0
    message: str = ""
    folder_id: int = 0
    is_folder: bool = False
    plugin_id: str = ""

    def get_dashboard_model(self) -> Dashboard:
        dash = Dashboard.from_json(self.dashboard)
        dash.org_id = self.org_id
        dash.updated_by = self.user_id
        if dash.id == 0:
            dash.created_by = self.user_id
        dash.plugin_id = self.plugin_id
        dash.folder_id = self.folder_id
        dash.is_folder = self.is_folder
        return dash


@dataclass
class GetDashboardQuery:
    org_id: int
    slug: str = ""
    id: int = 0


@dataclass
class DeleteDashboardCommand:
    id: int
    org_id: int


@dataclass
class GetDashboardsQuery:
    dashboard_ids: list[int] = field(default_factory=list)


@dataclass
class GetDashboardsByPluginIdQuery:
    org_id: int
    plugin_id: str


@dataclass
class GetDashboardTagsQuery:
    org_id: int


@dataclass
class GetDashboardSlugByIdQuery:
    id: int


@dataclass
class FindPersistedDashboardsQuery:
    signed_in_user: SignedInUser
    title: str = ""
    tags: list[str] = field(default_factory=list)
    is_starred: bool = False
    dashboard_ids: list[int] = field(default_factory=list)
    type: str = ""
    folder_id: int = 0
    limit: int = 0


@dataclass
class GetDashboardVersionsQuery:
    dashboard_id: int
    org_id: int
    limit: int = 0
    start: int = 0


@dataclass
class GetDashboardVersionQuery:
    dashboard_id: int
    org_id: int
    version: int


@dataclass
class RestoreDashboardVersionCommand:
    dashboard_id: int
    org_id: int
    version: int
    user_id: int = 0
