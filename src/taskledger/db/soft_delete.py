"""Soft-delete policy applied by the store.

Rows carrying ``deleted_at`` are never physically removed. Every ORM SELECT
issued through a session excludes rows whose ``deleted_at`` is set, unless the
statement opts out with ``include_deleted()``.
"""

from datetime import datetime

from sqlalchemy import event
from sqlalchemy.orm import Mapped, ORMExecuteState, Session, mapped_column, with_loader_criteria

from taskledger.db.types import UTCDateTime

INCLUDE_DELETED = "include_deleted"


class SoftDeleteMixin:
    """Adds the nullable ``deleted_at`` marker (null = live)."""

    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, default=None)


def include_deleted() -> dict[str, bool]:
    """Execution options that disable the soft-delete filter for one statement."""
    return {INCLUDE_DELETED: True}


@event.listens_for(Session, "do_orm_execute")
def _exclude_soft_deleted(execute_state: ORMExecuteState) -> None:
    if (
        execute_state.is_select
        and not execute_state.is_column_load
        and not execute_state.is_relationship_load
        and not execute_state.execution_options.get(INCLUDE_DELETED, False)
    ):
        execute_state.statement = execute_state.statement.options(
            with_loader_criteria(
                SoftDeleteMixin,
                lambda cls: cls.deleted_at.is_(None),
                include_aliases=True,
            )
        )


@event.listens_for(Session, "before_flush")
def _forbid_physical_delete(session: Session, flush_context, instances) -> None:
    for obj in session.deleted:
        if isinstance(obj, SoftDeleteMixin):
            raise RuntimeError(
                f"{type(obj).__name__} rows are soft-deleted; set deleted_at instead"
            )
