"""Per-task exclusive locks for in-process transition serialization."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID
from weakref import WeakValueDictionary


class TaskLockRegistry:
    """
    Hands out one asyncio.Lock per task id.

    Locks are held weakly: once no coroutine holds or waits on a task's lock it
    is collected, so the registry does not grow with the number of tasks ever
    touched. Different task ids never share a lock.
    """

    def __init__(self) -> None:
        self._locks: WeakValueDictionary[UUID, asyncio.Lock] = WeakValueDictionary()

    def lock_for(self, task_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(task_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[task_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, task_id: UUID) -> AsyncIterator[None]:
        lock = self.lock_for(task_id)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


task_locks = TaskLockRegistry()
