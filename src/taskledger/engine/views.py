"""Derived view builder - read-only projections over current task state."""

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskledger.config import settings
from taskledger.db.repositories import TaskRepository
from taskledger.models import (
    ProductivityRow,
    Situation,
    Task,
    TaskDashboardRow,
    TaskListingRow,
    User,
)
from taskledger.utils.time import Clock, utc_now


def classify(task: Task, now: datetime, urgent_window: timedelta) -> Situation:
    """
    Classify a task against its due date.

    OVERDUE: due in the past and neither completed nor cancelled.
    URGENT: due within [now, now + urgent_window].
    ON_TRACK: everything else, including tasks without a due date.
    """
    if task.due_at is None:
        return Situation.ON_TRACK
    if task.due_at < now and not task.status.is_closed():
        return Situation.OVERDUE
    if now <= task.due_at <= now + urgent_window:
        return Situation.URGENT
    return Situation.ON_TRACK


def resolution_hours(task: Task) -> float:
    return (task.completed_at - task.created_at).total_seconds() / 3600.0


def round_half_up(value: float, places: int = 1) -> float:
    """Round like SQL ROUND: halves go away from zero (0.25 -> 0.3)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


class ViewBuilder:
    """Builds dashboard, listing, and productivity projections.

    Views take no locks; each reflects the state committed when it runs.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = utc_now,
        urgent_window: timedelta | None = None,
    ):
        self.session = session
        self.clock = clock
        self.urgent_window = urgent_window or timedelta(hours=settings.urgent_window_hours)
        self.tasks = TaskRepository(session)

    async def task_listing(self, user_id: UUID | None = None) -> list[TaskListingRow]:
        """Live tasks with owner and category names, in creation order."""
        rows = await self.tasks.list_with_owner_and_category(owner_id=user_id)
        return [
            TaskListingRow(
                task_id=task.task_id,
                title=task.title,
                description=task.description,
                status=task.status,
                owner_name=owner.name,
                category_name=category.name if category else None,
                created_at=task.created_at,
                completed_at=task.completed_at,
            )
            for task, owner, category in rows
        ]

    async def dashboard(self, user_id: UUID | None = None) -> list[TaskDashboardRow]:
        """Live tasks classified as OVERDUE, URGENT, or ON_TRACK."""
        now = self.clock()
        rows = await self.tasks.list_with_owner_and_category(owner_id=user_id)
        return [
            TaskDashboardRow(
                task_id=task.task_id,
                title=task.title,
                description=task.description,
                status=task.status,
                priority=task.priority,
                owner_id=owner.user_id,
                owner_name=owner.name,
                category_name=category.name if category else None,
                due_at=task.due_at,
                created_at=task.created_at,
                completed_at=task.completed_at,
                situation=classify(task, now, self.urgent_window),
            )
            for task, owner, category in rows
        ]

    async def productivity_report(self, user_id: UUID | None = None) -> list[ProductivityRow]:
        """
        Per-user aggregate over live COMPLETED tasks.

        The completed filter is applied before grouping, so total_tasks counts
        completed tasks only and completion_rate is 100.0 for every row. Users
        without completed tasks produce no row.
        """
        grouped: dict[UUID, tuple[User, list[Task]]] = {}
        for task, owner in await self.tasks.list_completed_with_owner(owner_id=user_id):
            grouped.setdefault(owner.user_id, (owner, []))[1].append(task)

        report = []
        for owner, tasks in grouped.values():
            total = len(tasks)
            completed = sum(1 for t in tasks if t.is_completed())
            average = sum(resolution_hours(t) for t in tasks) / total
            report.append(
                ProductivityRow(
                    user_id=owner.user_id,
                    user_name=owner.name,
                    total_tasks=total,
                    completed_tasks=completed,
                    completion_rate=round_half_up(100.0 * completed / total),
                    average_resolution_hours=round_half_up(average),
                )
            )
        return report
