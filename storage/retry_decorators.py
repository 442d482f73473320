"""Retry decorators for store operations.

SQLite raises ``OperationalError("database is locked")`` when another
connection holds the write lock longer than the busy timeout. Those errors
are transient, so writes are retried with capped exponential backoff.
Anything else is re-raised immediately.
"""

import asyncio
import functools
import sqlite3
import traceback
from typing import Awaitable, Callable

from api.utils.debug import print__storage_debug
from storage.config import DEFAULT_MAX_RETRIES, RETRY_BASE_DELAY, RETRY_MAX_DELAY, T


def is_locked_database_error(error: Exception) -> bool:
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return "locked" in message or "busy" in message


def retry_on_locked_database(max_retries: int = DEFAULT_MAX_RETRIES):
    """Retry an async store call while SQLite reports a locked database."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    if not is_locked_database_error(exc) or attempt >= max_retries:
                        if is_locked_database_error(exc):
                            print__storage_debug(
                                f"❌ LOCK_RETRY EXHAUSTED: {func.__name__} still locked "
                                f"after {attempt + 1} attempts"
                            )
                        raise
                    delay = min(RETRY_BASE_DELAY * 2**attempt, RETRY_MAX_DELAY)
                    print__storage_debug(
                        f"🔄 LOCK_RETRY: {func.__name__} attempt {attempt + 1}/"
                        f"{max_retries + 1} hit a locked database, retrying in {delay:.2f}s"
                    )
                    print__storage_debug(traceback.format_exc())
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
