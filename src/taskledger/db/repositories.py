"""Database repositories for TaskLedger entities."""

from datetime import datetime
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskledger.db.soft_delete import include_deleted
from taskledger.db.tables import CategoryTable, TaskAuditTable, TaskTable, UserTable
from taskledger.models import (
    Category,
    Task,
    TaskAuditEntry,
    TaskPriority,
    TaskStatus,
    User,
)


class UserRepository:
    """Repository for user operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        email: str,
        password_hash: str,
        now: datetime,
        is_active: bool = True,
    ) -> User:
        """Create a new user. Email uniqueness is checked by the caller."""
        row = UserTable(
            user_id=uuid4(),
            name=name,
            email=email,
            password_hash=password_hash,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, user_id: UUID, for_update: bool = False) -> User | None:
        """Get a live user by ID."""
        query = (
            select(UserTable)
            .where(UserTable.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def get_by_email(self, email: str) -> User | None:
        """Get the live user registered with this email."""
        result = await self.session.execute(
            select(UserTable)
            .where(UserTable.email == email)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def email_in_use(self, email: str) -> bool:
        """Check whether a live user already has this email."""
        return await self.get_by_email(email) is not None

    async def set_active(self, user_id: UUID, is_active: bool, now: datetime) -> User | None:
        await self.session.execute(
            update(UserTable)
            .where(UserTable.user_id == user_id, UserTable.deleted_at.is_(None))
            .values(is_active=is_active, updated_at=now)
        )
        return await self.get(user_id)

    async def soft_delete(self, user_id: UUID, now: datetime) -> None:
        await self.session.execute(
            update(UserTable)
            .where(UserTable.user_id == user_id, UserTable.deleted_at.is_(None))
            .values(deleted_at=now, updated_at=now)
        )

    def _row_to_model(self, row: UserTable) -> User:
        """Convert database row to model."""
        return User(
            user_id=row.user_id,
            name=row.name,
            email=row.email,
            password_hash=row.password_hash,
            is_active=row.is_active,
            created_at=row.created_at,
            updated_at=row.updated_at,
            deleted_at=row.deleted_at,
        )


class CategoryRepository:
    """Repository for category operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        now: datetime,
        owner_id: UUID | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> Category:
        row = CategoryTable(
            category_id=uuid4(),
            name=name,
            color=color,
            description=description,
            owner_id=owner_id,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, category_id: UUID) -> Category | None:
        """Get a live category by ID."""
        result = await self.session.execute(
            select(CategoryTable)
            .where(CategoryTable.category_id == category_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def get_usable_by(self, category_id: UUID, owner_id: UUID) -> Category | None:
        """Get a live category owned by owner_id or global."""
        result = await self.session.execute(
            select(CategoryTable).where(
                CategoryTable.category_id == category_id,
                or_(CategoryTable.owner_id == owner_id, CategoryTable.owner_id.is_(None)),
            )
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def name_in_use(self, name: str, owner_id: UUID | None) -> bool:
        """Check whether (name, owner) already exists among live categories."""
        owner_clause = (
            CategoryTable.owner_id.is_(None)
            if owner_id is None
            else CategoryTable.owner_id == owner_id
        )
        result = await self.session.execute(
            select(CategoryTable)
            .where(CategoryTable.name == name, owner_clause)
            .limit(1)
        )
        return result.first() is not None

    async def list_owned_ids(self, owner_id: UUID) -> list[UUID]:
        result = await self.session.execute(
            select(CategoryTable).where(CategoryTable.owner_id == owner_id)
        )
        return [row.category_id for row in result.scalars().all()]

    async def soft_delete(self, category_ids: Sequence[UUID], now: datetime) -> None:
        if not category_ids:
            return
        await self.session.execute(
            update(CategoryTable)
            .where(
                CategoryTable.category_id.in_(category_ids),
                CategoryTable.deleted_at.is_(None),
            )
            .values(deleted_at=now, is_active=False, updated_at=now)
        )

    def _row_to_model(self, row: CategoryTable) -> Category:
        """Convert database row to model."""
        return Category(
            category_id=row.category_id,
            name=row.name,
            color=row.color,
            description=row.description,
            owner_id=row.owner_id,
            is_active=row.is_active,
            created_at=row.created_at,
            updated_at=row.updated_at,
            deleted_at=row.deleted_at,
        )


class TaskRepository:
    """Repository for task operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        owner_id: UUID,
        title: str,
        now: datetime,
        category_id: UUID | None = None,
        description: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_at: datetime | None = None,
    ) -> Task:
        """Insert a new Pending task."""
        row = TaskTable(
            task_id=uuid4(),
            owner_id=owner_id,
            category_id=category_id,
            title=title,
            description=description,
            priority=priority,
            status=TaskStatus.PENDING,
            due_at=due_at,
            completed_at=None,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(
        self,
        task_id: UUID,
        for_update: bool = False,
        with_deleted: bool = False,
    ) -> Task | None:
        """Get a task by ID (live only unless with_deleted)."""
        query = (
            select(TaskTable)
            .where(TaskTable.task_id == task_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        if with_deleted:
            query = query.execution_options(**include_deleted())
        result = await self.session.execute(query)
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def list_live(
        self,
        owner_id: UUID | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        """List live tasks in creation order."""
        query = select(TaskTable)
        if owner_id:
            query = query.where(TaskTable.owner_id == owner_id)
        if status:
            query = query.where(TaskTable.status == status)
        query = query.order_by(TaskTable.created_at.asc(), TaskTable.task_id.asc())

        result = await self.session.execute(query)
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def count(self, owner_id: UUID, status: TaskStatus) -> int:
        """Count live tasks of a user in the given status."""
        result = await self.session.execute(
            select(func.count())
            .select_from(TaskTable)
            .where(
                TaskTable.owner_id == owner_id,
                TaskTable.status == status,
                TaskTable.deleted_at.is_(None),
            )
        )
        return result.scalar_one()

    async def update_status(
        self,
        task_id: UUID,
        new_status: TaskStatus,
        completed_at: datetime | None,
        now: datetime,
    ) -> Task | None:
        """Write status, conclusion timestamp and update timestamp."""
        await self.session.execute(
            update(TaskTable)
            .where(TaskTable.task_id == task_id, TaskTable.deleted_at.is_(None))
            .values(status=new_status, completed_at=completed_at, updated_at=now)
        )
        return await self.get(task_id)

    async def soft_delete_for_owner(self, owner_id: UUID, now: datetime) -> int:
        """Soft-delete every live task of a user. Returns the affected count."""
        result = await self.session.execute(
            update(TaskTable)
            .where(TaskTable.owner_id == owner_id, TaskTable.deleted_at.is_(None))
            .values(deleted_at=now, updated_at=now)
        )
        return result.rowcount or 0

    async def clear_category(self, category_ids: Sequence[UUID], now: datetime) -> int:
        """Null the category reference on all tasks (live or not) pointing at these."""
        if not category_ids:
            return 0
        result = await self.session.execute(
            update(TaskTable)
            .where(TaskTable.category_id.in_(category_ids))
            .values(category_id=None, updated_at=now)
        )
        return result.rowcount or 0

    async def list_with_owner_and_category(
        self, owner_id: UUID | None = None
    ) -> list[tuple[Task, User, Category | None]]:
        """Live tasks joined with their live owner and optional live category."""
        query = (
            select(TaskTable, UserTable, CategoryTable)
            .join(UserTable, TaskTable.owner_id == UserTable.user_id)
            .outerjoin(CategoryTable, TaskTable.category_id == CategoryTable.category_id)
        )
        if owner_id:
            query = query.where(TaskTable.owner_id == owner_id)
        query = query.order_by(TaskTable.created_at.asc(), TaskTable.task_id.asc())

        result = await self.session.execute(query)
        users = UserRepository(self.session)
        categories = CategoryRepository(self.session)
        return [
            (
                self._row_to_model(task_row),
                users._row_to_model(user_row),
                categories._row_to_model(category_row) if category_row else None,
            )
            for task_row, user_row, category_row in result.all()
        ]

    async def list_completed_with_owner(
        self, owner_id: UUID | None = None
    ) -> list[tuple[Task, User]]:
        """Live Completed tasks joined with their live owner."""
        query = (
            select(TaskTable, UserTable)
            .join(UserTable, TaskTable.owner_id == UserTable.user_id)
            .where(TaskTable.status == TaskStatus.COMPLETED)
        )
        if owner_id:
            query = query.where(TaskTable.owner_id == owner_id)
        query = query.order_by(UserTable.name.asc(), UserTable.user_id.asc())

        result = await self.session.execute(query)
        users = UserRepository(self.session)
        return [
            (self._row_to_model(task_row), users._row_to_model(user_row))
            for task_row, user_row in result.all()
        ]

    def _row_to_model(self, row: TaskTable) -> Task:
        """Convert database row to model."""
        return Task(
            task_id=row.task_id,
            owner_id=row.owner_id,
            category_id=row.category_id,
            title=row.title,
            description=row.description,
            priority=row.priority,
            status=row.status,
            due_at=row.due_at,
            completed_at=row.completed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
            deleted_at=row.deleted_at,
        )


class TaskAuditRepository:
    """Repository for the append-only task audit log."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        task_id: UUID,
        previous_status: TaskStatus,
        new_status: TaskStatus,
        now: datetime,
    ) -> TaskAuditEntry:
        """Append an entry; callers hold the per-task lock."""
        sequence = await self.count_for_task(task_id) + 1
        row = TaskAuditTable(
            entry_id=uuid4(),
            task_id=task_id,
            sequence=sequence,
            previous_status=previous_status,
            new_status=new_status,
            created_at=now,
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def list_for_task(self, task_id: UUID) -> list[TaskAuditEntry]:
        """Audit entries for a task, oldest first."""
        result = await self.session.execute(
            select(TaskAuditTable)
            .where(TaskAuditTable.task_id == task_id)
            .order_by(TaskAuditTable.sequence.asc())
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def count_for_task(self, task_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(TaskAuditTable).where(TaskAuditTable.task_id == task_id)
        )
        return result.scalar_one()

    def _row_to_model(self, row: TaskAuditTable) -> TaskAuditEntry:
        """Convert database row to model."""
        return TaskAuditEntry(
            entry_id=row.entry_id,
            task_id=row.task_id,
            sequence=row.sequence,
            previous_status=row.previous_status,
            new_status=row.new_status,
            created_at=row.created_at,
        )
