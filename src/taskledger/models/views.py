"""Read-only projections built from current entity state."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from taskledger.models.enums import Situation, TaskPriority, TaskStatus


class TaskListingRow(BaseModel):
    """Task joined with owner and category names."""

    task_id: UUID
    title: str
    description: Optional[str] = None
    status: TaskStatus
    owner_name: str
    category_name: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class TaskDashboardRow(BaseModel):
    """Task listing row classified against its due date."""

    task_id: UUID
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    owner_id: UUID
    owner_name: str
    category_name: Optional[str] = None
    due_at: Optional[datetime] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    situation: Situation


class ProductivityRow(BaseModel):
    """Per-user aggregate over completed tasks."""

    user_id: UUID
    user_name: str
    # Scoped to completed tasks, so total_tasks == completed_tasks.
    total_tasks: int
    completed_tasks: int
    completion_rate: float
    average_resolution_hours: Optional[float] = None
