"""Task model - core tracked unit of work."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from taskledger.models.enums import TaskPriority, TaskStatus


class Task(BaseModel):
    """Snapshot of a task as stored."""

    # Identity
    task_id: UUID

    # Ownership
    owner_id: UUID
    category_id: Optional[UUID] = None

    # Content
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM

    # Status
    status: TaskStatus = TaskStatus.PENDING

    # Timestamps
    due_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED
