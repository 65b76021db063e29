"""
Kitchen Timer — Optimistic locking retry decorator

Conditional writes carry the order version they read. If the tick sweep or
another request bumped the version while we were awaiting the backend, the
write raises StaleVersionError and the whole read-call-write cycle is retried
with exponential backoff + jitter.
"""
import asyncio
import functools
import logging
import random

from kitchen_timer.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class StaleVersionError(Exception):
    """Raised when an order's version changed between our read and our write."""

    def __init__(self, order_id: str, expected: int, actual: int):
        super().__init__(
            f"Order '{order_id}' version conflict: expected {expected}, found {actual}."
        )
        self.order_id = order_id
        self.expected = expected
        self.actual = actual


def backoff_delay(attempt: int) -> float:
    """Seconds to wait before retry number ``attempt`` (1-based)."""
    base = settings.OPT_LOCK_BASE_DELAY_MS / 1000.0
    ceiling = settings.OPT_LOCK_MAX_DELAY_MS / 1000.0
    return min(base * (2 ** attempt), ceiling) + random.uniform(0, settings.OPT_LOCK_JITTER_MS / 1000.0)


def with_optimistic_retry(max_retries: int | None = None):
    """
    Decorator for async functions that perform version-checked writes.
    On StaleVersionError, retries with exponential backoff + jitter.

    Usage:
        @with_optimistic_retry()
        async def sync_status(self, order_id, status):
            ...
    """
    attempts = max_retries or settings.OPT_LOCK_MAX_RETRIES

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except StaleVersionError as exc:
                    if attempt >= attempts:
                        logger.error("%s: giving up after %d attempts (%s)", func.__name__, attempts, exc)
                        raise
                    delay = backoff_delay(attempt)
                    logger.warning(
                        "%s: %s, retry %d/%d in %.3fs",
                        func.__name__, exc, attempt, attempts - 1, delay,
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
        return wrapper
    return decorator
