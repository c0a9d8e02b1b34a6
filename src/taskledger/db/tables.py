"""SQLAlchemy table definitions."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from taskledger.db.base import Base
from taskledger.db.soft_delete import SoftDeleteMixin
from taskledger.db.types import UTCDateTime
from taskledger.models.enums import TaskPriority, TaskStatus


class UserTable(SoftDeleteMixin, Base):
    """Users table - task owners."""

    __tablename__ = "users"

    user_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        # Unique among live users only, so a deleted user's email can be reused
        Index(
            "uq_users_live_email",
            "email",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )


class CategoryTable(SoftDeleteMixin, Base):
    """Categories table - per-user or global task grouping."""

    __tablename__ = "categories"

    category_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Null owner = global category
    owner_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        Index(
            "uq_categories_live_owner_name",
            "owner_id",
            "name",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        # NULL owners compare distinct above, so global names get their own index
        Index(
            "uq_categories_live_global_name",
            "name",
            unique=True,
            postgresql_where=text("owner_id IS NULL AND deleted_at IS NULL"),
            sqlite_where=text("owner_id IS NULL AND deleted_at IS NULL"),
        ),
    )


class TaskTable(SoftDeleteMixin, Base):
    """Tasks table - core tracked units."""

    __tablename__ = "tasks"

    task_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    owner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("categories.category_id", ondelete="SET NULL"), nullable=True
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[TaskPriority] = mapped_column(
        Enum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM
    )
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus), nullable=False, default=TaskStatus.PENDING
    )

    # Timestamps
    due_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        Index("idx_tasks_owner_status", "owner_id", "status"),
        Index("idx_tasks_category", "category_id"),
        Index("idx_tasks_due", "due_at"),
    )


class TaskAuditTable(Base):
    """Task audit entries - append-only status history."""

    __tablename__ = "task_audit_entries"

    entry_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    task_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tasks.task_id", ondelete="CASCADE"), nullable=False
    )
    # Per-task position in the log, starting at 1
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_status: Mapped[TaskStatus] = mapped_column(Enum(TaskStatus), nullable=False)
    new_status: Mapped[TaskStatus] = mapped_column(Enum(TaskStatus), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        UniqueConstraint("task_id", "sequence", name="uq_audit_task_sequence"),
        Index("idx_audit_task", "task_id", "created_at"),
    )
