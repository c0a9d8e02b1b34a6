"""
Task lifecycle tests: creation rules, transitions, conclusion timestamps, audit log.
"""

from datetime import timedelta, timezone
from uuid import uuid4

import pytest

from taskledger.db.repositories import TaskRepository
from taskledger.engine import (
    CategoryNotFound,
    TaskNotFound,
    UserNotFound,
    ValidationError,
)
from taskledger.models import TaskPriority, TaskStatus
from taskledger.observability.metrics import metrics


@pytest.mark.asyncio
async def test_create_task_starts_pending_without_completion(ledger, user):
    task = await ledger.create_task(user.user_id, "Prepare report", description="Monthly")

    assert task.status == TaskStatus.PENDING
    assert task.completed_at is None
    assert task.priority == TaskPriority.MEDIUM
    assert task.due_at is None
    assert task.owner_id == user.user_id
    assert await ledger.task_history(task.task_id) == []
    assert metrics.counter("task.created") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   ", "\t\n"])
async def test_create_task_rejects_blank_title(ledger, user, title):
    with pytest.raises(ValidationError) as exc:
        await ledger.create_task(user.user_id, title)
    assert exc.value.field == "title"
    assert exc.value.code == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_create_task_strips_title(ledger, user):
    task = await ledger.create_task(user.user_id, "  Buy groceries  ")
    assert task.title == "Buy groceries"


@pytest.mark.asyncio
async def test_create_task_due_in_zero_days_is_due_now(ledger, user, clock):
    task = await ledger.create_task(user.user_id, "Report", due_in_days=0)

    assert task.due_at is not None
    assert task.due_at == clock.now


@pytest.mark.asyncio
async def test_create_task_due_in_days_offsets_creation_time(ledger, user, clock):
    task = await ledger.create_task(user.user_id, "Report", due_in_days=3)
    assert task.due_at == clock.now + timedelta(days=3)
    assert task.created_at == clock.now


@pytest.mark.asyncio
async def test_create_task_rejects_negative_due_in_days(ledger, user):
    with pytest.raises(ValidationError):
        await ledger.create_task(user.user_id, "Report", due_in_days=-1)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "priority,expected",
    [
        (None, TaskPriority.MEDIUM),
        ("low", TaskPriority.LOW),
        ("HIGH", TaskPriority.HIGH),
        (TaskPriority.URGENT, TaskPriority.URGENT),
        ("critical", TaskPriority.MEDIUM),
        (42, TaskPriority.MEDIUM),
    ],
)
async def test_create_task_priority_defaults_when_unrecognized(ledger, user, priority, expected):
    task = await ledger.create_task(user.user_id, "Report", priority=priority)
    assert task.priority == expected


@pytest.mark.asyncio
async def test_create_task_unknown_owner(ledger):
    with pytest.raises(UserNotFound):
        await ledger.create_task(uuid4(), "Report")


@pytest.mark.asyncio
async def test_create_task_inactive_owner(ledger, user):
    await ledger.deactivate_user(user.user_id)

    with pytest.raises(UserNotFound):
        await ledger.create_task(user.user_id, "Report")


@pytest.mark.asyncio
async def test_create_task_deleted_owner(ledger, user):
    await ledger.delete_user(user.user_id)

    with pytest.raises(UserNotFound):
        await ledger.create_task(user.user_id, "Report")


@pytest.mark.asyncio
async def test_create_task_accepts_own_and_global_categories(ledger, user):
    own = await ledger.create_category("Work", owner_id=user.user_id, color="#ff0000")
    shared = await ledger.create_category("Personal")

    first = await ledger.create_task(user.user_id, "Report", category_id=own.category_id)
    second = await ledger.create_task(user.user_id, "Groceries", category_id=shared.category_id)

    assert first.category_id == own.category_id
    assert second.category_id == shared.category_id


@pytest.mark.asyncio
async def test_create_task_rejects_foreign_category(ledger, user, other_user):
    foreign = await ledger.create_category("Work", owner_id=other_user.user_id)

    with pytest.raises(CategoryNotFound):
        await ledger.create_task(user.user_id, "Report", category_id=foreign.category_id)


@pytest.mark.asyncio
async def test_create_task_rejects_unknown_or_deleted_category(ledger, user):
    category = await ledger.create_category("Work")
    await ledger.delete_category(category.category_id)

    with pytest.raises(CategoryNotFound):
        await ledger.create_task(user.user_id, "Report", category_id=category.category_id)
    with pytest.raises(CategoryNotFound):
        await ledger.create_task(user.user_id, "Report", category_id=uuid4())


@pytest.mark.asyncio
async def test_report_scenario_complete_then_reopen(ledger, user, clock):
    """Complete sets completed_at and logs once; reopening clears it and logs again."""
    task = await ledger.create_task(user.user_id, "Report", due_in_days=0)
    assert task.status == TaskStatus.PENDING
    assert task.due_at == clock.now

    clock.advance(hours=2)
    completed = await ledger.transition_status(task.task_id, TaskStatus.COMPLETED)
    assert completed.status == TaskStatus.COMPLETED
    assert completed.completed_at == clock.now
    assert completed.updated_at == clock.now

    history = await ledger.task_history(task.task_id)
    assert [(e.previous_status, e.new_status) for e in history] == [
        (TaskStatus.PENDING, TaskStatus.COMPLETED)
    ]

    clock.advance(hours=1)
    reopened = await ledger.transition_status(task.task_id, TaskStatus.PENDING)
    assert reopened.status == TaskStatus.PENDING
    assert reopened.completed_at is None

    history = await ledger.task_history(task.task_id)
    assert [(e.previous_status, e.new_status) for e in history] == [
        (TaskStatus.PENDING, TaskStatus.COMPLETED),
        (TaskStatus.COMPLETED, TaskStatus.PENDING),
    ]
    assert [e.sequence for e in history] == [1, 2]
    assert history[1].created_at == clock.now


@pytest.mark.asyncio
async def test_same_status_transition_is_noop(ledger, user, clock):
    task = await ledger.create_task(user.user_id, "Report")
    started = await ledger.transition_status(task.task_id, TaskStatus.IN_PROGRESS)

    clock.advance(minutes=30)
    again = await ledger.transition_status(task.task_id, TaskStatus.IN_PROGRESS)

    assert again == started
    assert again.updated_at == started.updated_at
    assert len(await ledger.task_history(task.task_id)) == 1
    assert metrics.counter("task.transition") == 1


@pytest.mark.asyncio
async def test_completing_twice_keeps_first_completion_time(ledger, user, clock):
    task = await ledger.create_task(user.user_id, "Report")
    first = await ledger.transition_status(task.task_id, TaskStatus.COMPLETED)

    clock.advance(hours=5)
    second = await ledger.transition_status(task.task_id, "completed")

    assert second.completed_at == first.completed_at
    assert len(await ledger.task_history(task.task_id)) == 1


@pytest.mark.asyncio
async def test_completion_invariant_and_audit_count_over_sequence(ledger, user, clock):
    """completed_at is set iff COMPLETED, and one entry per real status change."""
    task = await ledger.create_task(user.user_id, "Report")
    sequence = [
        TaskStatus.IN_PROGRESS,
        TaskStatus.IN_PROGRESS,
        TaskStatus.COMPLETED,
        TaskStatus.CANCELLED,
        TaskStatus.PENDING,
        TaskStatus.PENDING,
        TaskStatus.COMPLETED,
        TaskStatus.COMPLETED,
        TaskStatus.IN_PROGRESS,
    ]

    current = task.status
    changes = 0
    for status in sequence:
        clock.advance(minutes=10)
        snapshot = await ledger.transition_status(task.task_id, status)
        if status != current:
            changes += 1
        current = status

        assert snapshot.status == status
        assert (snapshot.status == TaskStatus.COMPLETED) == (snapshot.completed_at is not None)

    history = await ledger.task_history(task.task_id)
    assert len(history) == changes
    for earlier, later in zip(history, history[1:]):
        assert earlier.new_status == later.previous_status


@pytest.mark.asyncio
async def test_cancelled_task_can_be_reopened(ledger, user):
    task = await ledger.create_task(user.user_id, "Report")
    await ledger.transition_status(task.task_id, TaskStatus.CANCELLED)

    reopened = await ledger.transition_status(task.task_id, TaskStatus.PENDING)

    assert reopened.status == TaskStatus.PENDING
    assert reopened.completed_at is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["done", "", None, 3])
async def test_transition_rejects_unknown_status(ledger, user, status):
    task = await ledger.create_task(user.user_id, "Report")

    with pytest.raises(ValidationError):
        await ledger.transition_status(task.task_id, status)
    assert (await ledger.get_task(task.task_id)).status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_transition_unknown_task(ledger):
    with pytest.raises(TaskNotFound):
        await ledger.transition_status(uuid4(), TaskStatus.COMPLETED)


@pytest.mark.asyncio
async def test_transition_soft_deleted_task(ledger, user):
    task = await ledger.create_task(user.user_id, "Report")
    await ledger.transition_status(task.task_id, TaskStatus.IN_PROGRESS)
    await ledger.delete_user(user.user_id)

    with pytest.raises(TaskNotFound):
        await ledger.transition_status(task.task_id, TaskStatus.COMPLETED)
    with pytest.raises(TaskNotFound):
        await ledger.get_task(task.task_id)

    # History survives soft deletion
    history = await ledger.task_history(task.task_id)
    assert len(history) == 1


@pytest.mark.asyncio
async def test_failed_transition_leaves_no_partial_audit(ledger, user):
    """If the status write fails, the audit append rolls back with it."""
    task = await ledger.create_task(user.user_id, "Report")

    async def failing_update(*args, **kwargs):
        raise RuntimeError("Simulated status write failure")

    ledger.lifecycle.tasks.update_status = failing_update

    with pytest.raises(RuntimeError, match="Simulated status write failure"):
        await ledger.transition_status(task.task_id, TaskStatus.COMPLETED)

    assert await ledger.task_history(task.task_id) == []
    stored = await ledger.get_task(task.task_id)
    assert stored.status == TaskStatus.PENDING
    assert stored.completed_at is None


@pytest.mark.asyncio
async def test_counts_pending_and_completed(ledger, user, other_user):
    first = await ledger.create_task(user.user_id, "Report")
    await ledger.create_task(user.user_id, "Groceries")
    await ledger.create_task(other_user.user_id, "Project")
    await ledger.transition_status(first.task_id, TaskStatus.COMPLETED)

    assert await ledger.count_pending_tasks(user.user_id) == 1
    assert await ledger.count_completed_tasks(user.user_id) == 1
    assert await ledger.count_pending_tasks(other_user.user_id) == 1
    assert await ledger.count_completed_tasks(other_user.user_id) == 0


@pytest.mark.asyncio
async def test_list_tasks_filters(ledger, user, other_user, clock):
    first = await ledger.create_task(user.user_id, "Report")
    clock.advance(seconds=1)
    await ledger.create_task(user.user_id, "Groceries")
    await ledger.create_task(other_user.user_id, "Project")
    await ledger.transition_status(first.task_id, TaskStatus.IN_PROGRESS)

    assert len(await ledger.list_tasks()) == 3
    assert [t.title for t in await ledger.list_tasks(owner_id=user.user_id)] == ["Report", "Groceries"]
    in_progress = await ledger.list_tasks(status="in_progress")
    assert [t.task_id for t in in_progress] == [first.task_id]


@pytest.mark.asyncio
async def test_timestamps_are_utc_after_round_trip(ledger, user, session):
    task = await ledger.create_task(user.user_id, "Report", due_in_days=1)
    await ledger.transition_status(task.task_id, TaskStatus.COMPLETED)
    await session.commit()

    stored = await ledger.get_task(task.task_id)
    for value in (stored.created_at, stored.updated_at, stored.due_at, stored.completed_at):
        assert value.tzinfo is not None
        assert value.utcoffset() == timezone.utc.utcoffset(None)


@pytest.mark.asyncio
async def test_task_repository_lists_live_tasks_in_creation_order(ledger, user, session, clock):
    first = await ledger.create_task(user.user_id, "Report")
    clock.advance(seconds=1)
    second = await ledger.create_task(user.user_id, "Groceries")
    await ledger.transition_status(first.task_id, TaskStatus.COMPLETED)

    tasks = TaskRepository(session)

    assert [t.task_id for t in await tasks.list_live()] == [first.task_id, second.task_id]
    assert [t.task_id for t in await tasks.list_live(status=TaskStatus.PENDING)] == [second.task_id]
    # Return annotations in the class body resolve to the builtin list
    assert TaskRepository.list_completed_with_owner.__annotations__["return"].__origin__ is list


@pytest.mark.asyncio
async def test_counts_exclude_soft_deleted_tasks(ledger, user):
    done = await ledger.create_task(user.user_id, "Report")
    await ledger.transition_status(done.task_id, TaskStatus.COMPLETED)
    assert await ledger.count_completed_tasks(user.user_id) == 1

    await ledger.delete_user(user.user_id)

    assert await ledger.count_completed_tasks(user.user_id) == 0
    assert await ledger.count_pending_tasks(user.user_id) == 0
