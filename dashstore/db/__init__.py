"""Database layer package.

Public re-exports so callers can write::

    from dashstore.db import get_connection, init_db, transaction
    from dashstore.db import dashboards
"""

from dashstore.db.connection import get_connection, transaction
from dashstore.db.migrations import init_db
from dashstore.db import dashboards

__all__ = ["get_connection", "init_db", "transaction", "dashboards"]
