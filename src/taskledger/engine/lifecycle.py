"""Task lifecycle engine - creation and status transitions."""

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskledger.config import settings
from taskledger.db.repositories import (
    CategoryRepository,
    TaskAuditRepository,
    TaskRepository,
    UserRepository,
)
from taskledger.engine.errors import (
    CategoryNotFound,
    TaskNotFound,
    UserNotFound,
    ValidationError,
)
from taskledger.engine.locks import TaskLockRegistry, task_locks
from taskledger.models import Task, TaskAuditEntry, TaskPriority, TaskStatus
from taskledger.observability.metrics import metrics
from taskledger.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


def parse_status(value: Any) -> TaskStatus:
    """Parse a status strictly; unknown values are rejected."""
    if isinstance(value, TaskStatus):
        return value
    if isinstance(value, str):
        try:
            return TaskStatus(value.strip().lower())
        except ValueError:
            pass
    raise ValidationError(f"Unknown task status: {value!r}", field="status")


class TaskLifecycle:
    """
    Owns every write to a task's status.

    Tasks are only created through create_task and only mutated through
    transition_status, so the completed_at and audit invariants hold without
    any database-side triggers:

    - completed_at is set iff status is COMPLETED
    - one audit entry per transition where the status actually changes
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = utc_now,
        locks: TaskLockRegistry = task_locks,
    ):
        self.session = session
        self.clock = clock
        self.locks = locks
        self.tasks = TaskRepository(session)
        self.audit = TaskAuditRepository(session)
        self.users = UserRepository(session)
        self.categories = CategoryRepository(session)

    async def create_task(
        self,
        owner_id: UUID,
        title: str,
        category_id: UUID | None = None,
        description: str | None = None,
        priority: Any = None,
        due_in_days: int | None = None,
    ) -> Task:
        """
        Create a Pending task.

        Creation is not a transition, so no audit entry is written.

        Raises:
            ValidationError: blank title or negative due_in_days
            UserNotFound: owner missing, deleted, or inactive
            CategoryNotFound: category missing, deleted, or owned by someone else
        """
        if title is None or not title.strip():
            raise ValidationError("Task title must not be empty", field="title")
        if due_in_days is not None and due_in_days < 0:
            raise ValidationError("due_in_days must not be negative", field="due_in_days")

        task_priority = TaskPriority.parse(priority, default=settings.default_priority)

        async with self.session.begin_nested():
            # Lock the owner row so a concurrent delete cannot slip in before the insert
            owner = await self.users.get(owner_id, for_update=True)
            if not owner or not owner.is_active:
                raise UserNotFound(str(owner_id))

            if category_id is not None:
                category = await self.categories.get_usable_by(category_id, owner_id)
                if not category:
                    raise CategoryNotFound(str(category_id))

            now = self.clock()
            due_at = now + timedelta(days=due_in_days) if due_in_days is not None else None

            task = await self.tasks.create(
                owner_id=owner_id,
                title=title.strip(),
                now=now,
                category_id=category_id,
                description=description,
                priority=task_priority,
                due_at=due_at,
            )

        metrics.inc_counter("task.created")
        logger.info(f"Created task {task.task_id} for user {owner_id} ({task.priority.value})")
        return task

    async def transition_status(self, task_id: UUID, new_status: Any) -> Task:
        """
        Move a task to new_status.

        Every status pair is permitted. Transitioning to the current status is a
        no-op that returns the stored snapshot untouched.

        Raises:
            ValidationError: new_status is not a known status
            TaskNotFound: task missing or soft-deleted
        """
        target = parse_status(new_status)

        # Store transaction first, task lock second. On SQLite the transaction
        # start takes the database write lock, and any session already holding
        # that lock must never wait on a task lock we own.
        await self.session.connection()

        async with self.locks.hold(task_id):
            async with self.session.begin_nested():  # SAVEPOINT
                task = await self.tasks.get(task_id, for_update=True)
                if not task:
                    raise TaskNotFound(str(task_id))

                previous = task.status
                if previous == target:
                    return task

                now = self.clock()
                if target == TaskStatus.COMPLETED:
                    completed_at = now
                else:
                    completed_at = None

                await self.audit.append(task_id, previous, target, now)
                updated = await self.tasks.update_status(task_id, target, completed_at, now)

        metrics.inc_counter("task.transition")
        logger.info(f"Task {task_id} transitioned {previous.value} -> {target.value}")
        return updated

    async def get_task(self, task_id: UUID) -> Task:
        task = await self.tasks.get(task_id)
        if not task:
            raise TaskNotFound(str(task_id))
        return task

    async def list_tasks(
        self,
        owner_id: UUID | None = None,
        status: Any = None,
    ) -> list[Task]:
        """List live tasks, optionally filtered by owner and status."""
        task_status = parse_status(status) if status is not None else None
        return await self.tasks.list_live(owner_id=owner_id, status=task_status)

    async def task_history(self, task_id: UUID) -> list[TaskAuditEntry]:
        """Audit entries for a task. History outlives soft deletion."""
        task = await self.tasks.get(task_id, with_deleted=True)
        if not task:
            raise TaskNotFound(str(task_id))
        return await self.audit.list_for_task(task_id)

    async def count_pending_tasks(self, user_id: UUID) -> int:
        return await self.tasks.count(user_id, TaskStatus.PENDING)

    async def count_completed_tasks(self, user_id: UUID) -> int:
        return await self.tasks.count(user_id, TaskStatus.COMPLETED)
