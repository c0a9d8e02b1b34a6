"""TaskLedger enumerations."""

from enum import Enum
from typing import Any


class TaskStatus(str, Enum):
    """Task lifecycle status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def closed_states(cls) -> set["TaskStatus"]:
        """Return states that can never be overdue."""
        return {cls.COMPLETED, cls.CANCELLED}

    def is_closed(self) -> bool:
        """Check if status is completed or cancelled."""
        return self in self.closed_states()


class TaskPriority(str, Enum):
    """Task priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def parse(cls, value: Any, default: "TaskPriority | None" = None) -> "TaskPriority":
        """Parse a priority leniently, falling back to the default (Medium)."""
        fallback = default or cls.MEDIUM
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return fallback
        return fallback


class Situation(str, Enum):
    """Dashboard classification of a task against its due date."""

    OVERDUE = "OVERDUE"
    URGENT = "URGENT"
    ON_TRACK = "ON_TRACK"
