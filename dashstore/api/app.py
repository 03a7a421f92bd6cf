"""HTTP surface for the dashboard store.

The schema is initialised once at startup and the database path parked on
``app.state.db_path``; routers get a fresh connection per request from
:func:`~dashstore.api.deps.get_db`.

Mounted prefixes:

    /dashboards  save / get / delete / tags / versions
    /search      filtered, ACL-aware dashboard search
    /alerting    evaluate a reduced value against a condition
    /metrics     Prometheus exposition

Run locally with ``uvicorn dashstore.api.app:app --reload``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dashstore import __version__
from dashstore.api.routers import alerting, dashboards, search
from dashstore.config import settings
from dashstore.db import get_connection, init_db
from dashstore.log import configure_logging
from dashstore.metrics import metrics_response

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)
    db = get_connection()
    try:
        init_db(db)
    finally:
        db.close()
    app.state.db_path = settings.db_path
    logger.info("dashstore API using %s", settings.db_path)
    yield


def create_app() -> FastAPI:
    """Build the FastAPI app with every router mounted."""
    app = FastAPI(
        title="dashstore API",
        description=(
            "Versioned dashboard storage: optimistic-concurrency saves, "
            "folder-aware deletes, tag cloud, ACL-filtered search, version "
            "history and alert condition evaluation."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Open to any origin; put a proxy in front for anything public.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(dashboards.router, prefix="/dashboards", tags=["dashboards"])
    app.include_router(search.router, prefix="/search", tags=["search"])
    app.include_router(alerting.router, prefix="/alerting", tags=["alerting"])

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Any:
        return metrics_response()

    return app


app = create_app()
