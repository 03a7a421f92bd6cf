"""Error kinds raised by the dashboard store and the alert evaluator.

Every store operation either returns its result or raises one of these.
Callers decide whether to re-read and resubmit; nothing here retries.
"""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for all dashstore errors."""


class DashboardNotFound(DashboardError, LookupError):
    """No dashboard matches the id/slug in the org, or it vanished mid-save."""

    def __init__(self, message: str = "Dashboard not found") -> None:
        super().__init__(message)


class VersionConflict(DashboardError):
    """The declared version is stale and overwrite was not requested."""

    def __init__(
        self,
        message: str = "The dashboard has been changed by someone else",
    ) -> None:
        super().__init__(message)


class DuplicateTitleError(DashboardError):
    """Another dashboard in the same org already uses this slug."""

    def __init__(
        self,
        message: str = "A dashboard with the same name already exists",
    ) -> None:
        super().__init__(message)


class ProtectedDashboardError(DashboardError):
    """The dashboard is provisioned by a plugin and overwrite was not requested."""

    def __init__(self, plugin_id: str) -> None:
        self.plugin_id = plugin_id
        super().__init__(
            f"Dashboard belongs to plugin {plugin_id!r}; "
            "saving requires overwrite"
        )


class ValidationError(DashboardError, ValueError):
    """A command or evaluator model is malformed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)
