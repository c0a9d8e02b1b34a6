"""TaskLedger core engine - canonical operations."""

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskledger.db.repositories import CategoryRepository, UserRepository
from taskledger.db.retry import with_store_retry
from taskledger.engine.errors import ConflictError, UserNotFound, ValidationError
from taskledger.engine.guard import DeletionGuard
from taskledger.engine.lifecycle import TaskLifecycle
from taskledger.engine.locks import TaskLockRegistry, task_locks
from taskledger.engine.views import ViewBuilder
from taskledger.models import (
    Category,
    ProductivityRow,
    Task,
    TaskAuditEntry,
    TaskDashboardRow,
    TaskListingRow,
    User,
)
from taskledger.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


class TaskLedgerEngine:
    """
    Core engine implementing canonical TaskLedger operations.

    The engine works inside the caller's session: it flushes and uses
    savepoints but never commits. Wrap calls in ``get_session()`` (or commit
    yourself) to make them durable.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock | None = None,
        locks: TaskLockRegistry | None = None,
        urgent_window: timedelta | None = None,
    ):
        self.session = session
        self.clock = clock or utc_now
        self.users = UserRepository(session)
        self.categories = CategoryRepository(session)
        self.lifecycle = TaskLifecycle(session, self.clock, locks or task_locks)
        self.guard = DeletionGuard(session, self.clock)
        self.views = ViewBuilder(session, self.clock, urgent_window)

    async def _recover(self) -> None:
        """Roll back a root transaction the failed attempt left unusable."""
        transaction = self.session.get_transaction()
        if transaction is not None and not transaction.is_active:
            await self.session.rollback()

    async def _write(self, operation):
        return await with_store_retry(operation, on_retry=self._recover)

    # =========================================================================
    # Reference data (users, categories)
    # =========================================================================

    async def create_user(
        self,
        name: str,
        email: str,
        password_hash: str,
        is_active: bool = True,
    ) -> User:
        """Register a user. The credential hash is stored as given."""
        if not name or not name.strip():
            raise ValidationError("User name must not be empty", field="name")
        if not email or not email.strip():
            raise ValidationError("User email must not be empty", field="email")
        email = email.strip().lower()

        async def operation() -> User:
            try:
                async with self.session.begin_nested():
                    if await self.users.email_in_use(email):
                        raise ConflictError(f"email already registered: {email}")
                    return await self.users.create(
                        name=name.strip(),
                        email=email,
                        password_hash=password_hash,
                        now=self.clock(),
                        is_active=is_active,
                    )
            except IntegrityError as e:
                # A concurrent insert won the race past the check above
                raise ConflictError(f"email already registered: {email}") from e

        user = await self._write(operation)
        logger.info(f"Created user {user.user_id}")
        return user

    async def deactivate_user(self, user_id: UUID) -> User:
        """Mark a user inactive; inactive users cannot receive new tasks."""

        async def operation() -> User:
            async with self.session.begin_nested():
                user = await self.users.set_active(user_id, False, self.clock())
                if not user:
                    raise UserNotFound(str(user_id))
                return user

        return await self._write(operation)

    async def get_user(self, user_id: UUID) -> User:
        user = await self.users.get(user_id)
        if not user:
            raise UserNotFound(str(user_id))
        return user

    async def get_user_by_email(self, email: str) -> User:
        user = await self.users.get_by_email(email.strip().lower())
        if not user:
            raise UserNotFound(email)
        return user

    async def create_category(
        self,
        name: str,
        owner_id: UUID | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> Category:
        """Create a category for owner_id, or a global one when owner_id is None."""
        if not name or not name.strip():
            raise ValidationError("Category name must not be empty", field="name")
        name = name.strip()

        async def operation() -> Category:
            try:
                async with self.session.begin_nested():
                    if owner_id is not None and not await self.users.get(owner_id):
                        raise UserNotFound(str(owner_id))
                    if await self.categories.name_in_use(name, owner_id):
                        raise ConflictError(f"category already exists: {name}")
                    return await self.categories.create(
                        name=name,
                        now=self.clock(),
                        owner_id=owner_id,
                        color=color,
                        description=description,
                    )
            except IntegrityError as e:
                raise ConflictError(f"category already exists: {name}") from e

        category = await self._write(operation)
        logger.info(f"Created category {category.category_id} ({name})")
        return category

    # =========================================================================
    # Task lifecycle
    # =========================================================================

    async def create_task(
        self,
        owner_id: UUID,
        title: str,
        category_id: UUID | None = None,
        description: str | None = None,
        priority: Any = None,
        due_in_days: int | None = None,
    ) -> Task:
        return await self._write(
            lambda: self.lifecycle.create_task(
                owner_id=owner_id,
                title=title,
                category_id=category_id,
                description=description,
                priority=priority,
                due_in_days=due_in_days,
            )
        )

    async def transition_status(self, task_id: UUID, new_status: Any) -> Task:
        return await self._write(lambda: self.lifecycle.transition_status(task_id, new_status))

    async def get_task(self, task_id: UUID) -> Task:
        return await self.lifecycle.get_task(task_id)

    async def list_tasks(self, owner_id: UUID | None = None, status: Any = None) -> list[Task]:
        return await self.lifecycle.list_tasks(owner_id=owner_id, status=status)

    async def task_history(self, task_id: UUID) -> list[TaskAuditEntry]:
        return await self.lifecycle.task_history(task_id)

    async def count_pending_tasks(self, user_id: UUID) -> int:
        return await self.lifecycle.count_pending_tasks(user_id)

    async def count_completed_tasks(self, user_id: UUID) -> int:
        return await self.lifecycle.count_completed_tasks(user_id)

    # =========================================================================
    # Deletion
    # =========================================================================

    async def can_delete_user(self, user_id: UUID) -> None:
        await self.guard.can_delete_user(user_id)

    async def delete_user(self, user_id: UUID) -> int:
        return await self._write(lambda: self.guard.delete_user(user_id))

    async def delete_category(self, category_id: UUID) -> int:
        return await self._write(lambda: self.guard.delete_category(category_id))

    # =========================================================================
    # Derived views
    # =========================================================================

    async def task_listing(self, user_id: UUID | None = None) -> list[TaskListingRow]:
        return await self.views.task_listing(user_id)

    async def dashboard(self, user_id: UUID | None = None) -> list[TaskDashboardRow]:
        return await self.views.dashboard(user_id)

    async def productivity_report(self, user_id: UUID | None = None) -> list[ProductivityRow]:
        return await self.views.productivity_report(user_id)
