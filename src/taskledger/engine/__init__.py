"""TaskLedger engine - lifecycle rules, deletion guard, and derived views."""

from taskledger.engine.core import TaskLedgerEngine
from taskledger.engine.errors import (
    CategoryNotFound,
    ConflictError,
    NotFoundError,
    TaskLedgerError,
    TaskNotFound,
    UserNotFound,
    ValidationError,
)

__all__ = [
    "CategoryNotFound",
    "ConflictError",
    "NotFoundError",
    "TaskLedgerEngine",
    "TaskLedgerError",
    "TaskNotFound",
    "UserNotFound",
    "ValidationError",
]
