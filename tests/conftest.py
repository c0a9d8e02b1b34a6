"""
Pytest fixtures for TaskLedger tests.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Ensure test config is set before importing taskledger modules.
os.environ.setdefault("TASKLEDGER_ENV", "development")
os.environ.setdefault("TASKLEDGER_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TASKLEDGER_STORE_RETRY_BACKOFF_MS", "0")

from taskledger.db.base import Base, create_engine
import taskledger.db.tables  # noqa: F401
from taskledger.engine import TaskLedgerEngine
from taskledger.engine.locks import TaskLockRegistry
from taskledger.observability.metrics import metrics

T0 = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Deterministic clock; only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def locks():
    return TaskLockRegistry()


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite database per test, so separate sessions share state."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskledger_test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    """Provide a session per test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def ledger(session, clock, locks):
    """Engine bound to the test session and frozen clock."""
    return TaskLedgerEngine(session, clock=clock, locks=locks)


@pytest.fixture
async def user(ledger):
    return await ledger.create_user("Carlos Silva", "carlos@example.com", "hash-1")


@pytest.fixture
async def other_user(ledger):
    return await ledger.create_user("Ana Costa", "ana@example.com", "hash-2")
