"""
Retry with exponential backoff at the data-store boundary.

Only transient store failures (lost connections, OperationalError and
InterfaceError) are retried. Once retries are exhausted the failure
surfaces as PersistenceError; constraint violations and anything else
propagate untouched.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from ..errors import PersistenceError
from ..settings import settings

logger = logging.getLogger("brewline.retry")

T = TypeVar("T")

TRANSIENT = (OperationalError, InterfaceError)


def is_transient(exc: DBAPIError) -> bool:
    return isinstance(exc, TRANSIENT) or bool(getattr(exc, "connection_invalidated", False))


def _delay_sec(attempt: int, base_ms: int) -> float:
    # 300ms, 600ms, 1200ms, ...
    return (base_ms * (2 ** attempt)) / 1000


def with_retry(
    fn: Callable[[], T],
    retries: Optional[int] = None,
    base_ms: Optional[int] = None,
    label: str = "operation",
    on_retry: Optional[Callable[[], None]] = None,
) -> T:
    """Call `fn`, retrying transient store errors up to `retries` times."""
    retries = settings.persistence_retries if retries is None else retries
    base_ms = settings.persistence_backoff_ms if base_ms is None else base_ms

    attempt = 0
    while True:
        try:
            return fn()
        except DBAPIError as e:
            if not is_transient(e):
                raise
            if attempt >= retries:
                logger.error(f"{label} failed after {attempt + 1} attempts: {e}")
                raise PersistenceError(f"{label} failed: data store unavailable") from e
            delay = _delay_sec(attempt, base_ms)
            logger.warning(f"{label} failed (attempt {attempt + 1}), retrying in {delay:.2f}s: {e}")
            if on_retry is not None:
                on_retry()
            time.sleep(delay)
            attempt += 1


async def with_retry_async(
    fn: Callable[[], Awaitable[T]],
    retries: Optional[int] = None,
    base_ms: Optional[int] = None,
    label: str = "operation",
) -> T:
    """Async variant of with_retry for awaitable store calls."""
    retries = settings.persistence_retries if retries is None else retries
    base_ms = settings.persistence_backoff_ms if base_ms is None else base_ms

    attempt = 0
    while True:
        try:
            return await fn()
        except DBAPIError as e:
            if not is_transient(e):
                raise
            if attempt >= retries:
                logger.error(f"{label} failed after {attempt + 1} attempts: {e}")
                raise PersistenceError(f"{label} failed: data store unavailable") from e
            delay = _delay_sec(attempt, base_ms)
            logger.warning(f"{label} failed (attempt {attempt + 1}), retrying in {delay:.2f}s: {e}")
            await asyncio.sleep(delay)
            attempt += 1
