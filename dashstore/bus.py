"""In-process command/query dispatch.

Handlers are plain store functions ``handler(conn, message) -> result``,
registered per message type.  The connection is always passed explicitly by
the caller; the bus holds no database state.

Usage::

    bus = default_bus()
    dash = bus.dispatch(conn, SaveDashboardCommand(dashboard={...}, org_id=1))
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable

from dashstore.db import dashboards, search, versions
from dashstore.db.models import (
    DeleteDashboardCommand,
    FindPersistedDashboardsQuery,
    GetDashboardQuery,
    GetDashboardsByPluginIdQuery,
    GetDashboardsQuery,
    GetDashboardSlugByIdQuery,
    GetDashboardTagsQuery,
    GetDashboardVersionQuery,
    GetDashboardVersionsQuery,
    RestoreDashboardVersionCommand,
    SaveDashboardCommand,
)

logger = logging.getLogger(__name__)

Handler = Callable[[sqlite3.Connection, Any], Any]


class Bus:
    def __init__(self) -> None:
        self._handlers: dict[type, Handler] = {}

    def add_handler(self, message_type: type, handler: Handler) -> None:
        """Route messages of *message_type* to *handler*, replacing any previous one."""
        self._handlers[message_type] = handler

    def has_handler(self, message_type: type) -> bool:
        return message_type in self._handlers

    def dispatch(self, conn: sqlite3.Connection, message: Any) -> Any:
        """Run the handler registered for ``type(message)`` and return its result.

        Raises:
            LookupError: No handler is registered for the message type.
        """
        handler = self._handlers.get(type(message))
        if handler is None:
            raise LookupError(f"No handler registered for {type(message).__name__}")
        logger.debug("dispatching %s", type(message).__name__)
        return handler(conn, message)


def default_bus() -> Bus:
    """Return a bus wired to every dashboard store operation."""
    bus = Bus()
    bus.add_handler(SaveDashboardCommand, dashboards.save_dashboard)
    bus.add_handler(GetDashboardQuery, dashboards.get_dashboard)
    bus.add_handler(DeleteDashboardCommand, dashboards.delete_dashboard)
    bus.add_handler(GetDashboardsQuery, dashboards.get_dashboards)
    bus.add_handler(GetDashboardsByPluginIdQuery, dashboards.get_dashboards_by_plugin_id)
    bus.add_handler(GetDashboardTagsQuery, dashboards.get_dashboard_tags)
    bus.add_handler(GetDashboardSlugByIdQuery, dashboards.get_dashboard_slug_by_id)
    bus.add_handler(FindPersistedDashboardsQuery, search.search_dashboards)
    bus.add_handler(GetDashboardVersionsQuery, versions.get_dashboard_versions)
    bus.add_handler(GetDashboardVersionQuery, versions.get_dashboard_version)
    bus.add_handler(RestoreDashboardVersionCommand, versions.restore_dashboard_version)
    return bus
