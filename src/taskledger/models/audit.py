"""Task audit entry model - append-only status history."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from taskledger.models.enums import TaskStatus


class TaskAuditEntry(BaseModel):
    """Immutable record of a single status change."""

    model_config = ConfigDict(frozen=True)

    entry_id: UUID
    task_id: UUID
    sequence: int
    previous_status: TaskStatus
    new_status: TaskStatus
    created_at: datetime
