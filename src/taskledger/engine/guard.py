"""Deletion guard - business rules checked before users or categories go away."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskledger.db.repositories import CategoryRepository, TaskRepository, UserRepository
from taskledger.engine.errors import CategoryNotFound, ConflictError, UserNotFound
from taskledger.models import TaskStatus
from taskledger.observability.metrics import metrics
from taskledger.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


class DeletionGuard:
    """Soft-deletes users and categories, cascading to dependent rows."""

    def __init__(self, session: AsyncSession, clock: Clock = utc_now):
        self.session = session
        self.clock = clock
        self.users = UserRepository(session)
        self.categories = CategoryRepository(session)
        self.tasks = TaskRepository(session)

    async def can_delete_user(self, user_id: UUID) -> None:
        """
        Raise unless the user may be deleted.

        Only live PENDING tasks block deletion; IN_PROGRESS tasks do not.
        """
        user = await self.users.get(user_id)
        if not user:
            raise UserNotFound(str(user_id))

        pending = await self.tasks.count(user_id, TaskStatus.PENDING)
        if pending > 0:
            metrics.inc_counter("guard.user_delete_rejected")
            logger.warning(f"Refusing to delete user {user_id}: {pending} pending task(s)")
            raise ConflictError("cannot delete user with pending tasks")

    async def delete_user(self, user_id: UUID) -> int:
        """
        Soft-delete a user with their tasks and owned categories.

        Returns the number of tasks soft-deleted. Nothing changes on conflict.
        """
        async with self.session.begin_nested():  # SAVEPOINT
            # Lock first so no task can be created between the check and the cascade
            if not await self.users.get(user_id, for_update=True):
                raise UserNotFound(str(user_id))
            await self.can_delete_user(user_id)

            now = self.clock()
            owned_categories = await self.categories.list_owned_ids(user_id)
            await self.tasks.clear_category(owned_categories, now)
            await self.categories.soft_delete(owned_categories, now)
            deleted_tasks = await self.tasks.soft_delete_for_owner(user_id, now)
            await self.users.soft_delete(user_id, now)

        metrics.inc_counter("user.deleted")
        logger.info(
            f"Deleted user {user_id} with {deleted_tasks} task(s) "
            f"and {len(owned_categories)} owned categories"
        )
        return deleted_tasks

    async def delete_category(self, category_id: UUID) -> int:
        """
        Soft-delete a category. Always allowed.

        Tasks are never deleted with their category; their reference is cleared.
        Returns the number of tasks that were detached.
        """
        async with self.session.begin_nested():  # SAVEPOINT
            if not await self.categories.get(category_id):
                raise CategoryNotFound(str(category_id))

            now = self.clock()
            detached = await self.tasks.clear_category([category_id], now)
            await self.categories.soft_delete([category_id], now)

        metrics.inc_counter("category.deleted")
        logger.info(f"Deleted category {category_id}, detached {detached} task(s)")
        return detached
