"""Process-wide logging setup.

Modules only ever do ``logger = logging.getLogger(__name__)``; the API
lifespan and the CLI entry point call :func:`configure_logging` once.
"""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a root handler at *level* (no-op if one is already present)."""
    logging.basicConfig(level=level.upper(), format=_FORMAT)
    logging.getLogger("dashstore").setLevel(level.upper())
