"""Retry policy for transient storage failures."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError

from taskledger.config import settings
from taskledger.observability.metrics import metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_seconds(attempt: int) -> float:
    """Exponential backoff: base * 2^(attempt-1), capped at max."""
    backoff_ms = min(
        settings.store_retry_backoff_ms * (2 ** (attempt - 1)),
        settings.store_retry_max_backoff_ms,
    )
    return backoff_ms / 1000.0


async def with_store_retry(
    operation: Callable[[], Awaitable[T]],
    attempts: int | None = None,
    on_retry: Callable[[], Awaitable[None]] | None = None,
) -> T:
    """
    Run a storage operation, retrying on OperationalError.

    Only transient driver errors (locked database, lock timeout, dropped
    connection) are retried. Business-rule errors propagate immediately.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        attempts: Total attempts (defaults to settings.store_retry_attempts)
        on_retry: Optional hook awaited before each retry, e.g. a rollback
    """
    max_attempts = attempts or settings.store_retry_attempts
    attempt = 1
    while True:
        try:
            return await operation()
        except OperationalError as e:
            if attempt >= max_attempts:
                logger.error(f"Store operation failed after {attempt} attempts: {e}")
                raise
            delay = backoff_seconds(attempt)
            metrics.inc_counter("store.retry")
            logger.warning(
                f"Transient store failure (attempt {attempt}/{max_attempts}), "
                f"retrying in {delay:.3f}s: {e}"
            )
            if on_retry is not None:
                await on_retry()
            await asyncio.sleep(delay)
            attempt += 1
