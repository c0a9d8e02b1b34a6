"""TaskLedger database layer."""

from taskledger.db.base import Base, create_engine, get_session, init_db
from taskledger.db.tables import (
    CategoryTable,
    TaskAuditTable,
    TaskTable,
    UserTable,
)

__all__ = [
    "Base",
    "create_engine",
    "get_session",
    "init_db",
    "CategoryTable",
    "TaskAuditTable",
    "TaskTable",
    "UserTable",
]
