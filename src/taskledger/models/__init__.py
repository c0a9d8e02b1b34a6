"""TaskLedger data models."""

from taskledger.models.enums import Situation, TaskPriority, TaskStatus
from taskledger.models.user import Category, User
from taskledger.models.task import Task
from taskledger.models.audit import TaskAuditEntry
from taskledger.models.views import ProductivityRow, TaskDashboardRow, TaskListingRow

__all__ = [
    "Category",
    "ProductivityRow",
    "Situation",
    "Task",
    "TaskAuditEntry",
    "TaskDashboardRow",
    "TaskListingRow",
    "TaskPriority",
    "TaskStatus",
    "User",
]
