"""REST API for dashstore; ``uvicorn dashstore.api:app`` serves it."""

from dashstore.api.app import app

__all__ = ["app"]
