"""portlease database layer."""

from portlease.db.base import (
    Base,
    close_db,
    create_engine,
    create_session_factory,
    init_db,
    session_scope,
)
from portlease.db.store import LeaseStore
from portlease.db.tables import LeaseTable

__all__ = [
    "Base",
    "LeaseStore",
    "LeaseTable",
    "close_db",
    "create_engine",
    "create_session_factory",
    "init_db",
    "session_scope",
]
