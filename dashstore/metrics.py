"""Prometheus counters for the dashboard store."""

from __future__ import annotations

from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

DASHBOARD_INSERTS = Counter(
    "dashstore_dashboard_inserts_total",
    "Dashboards created through the save protocol",
)


def metrics_response() -> Response:
    """Render the default registry in the Prometheus text format."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
