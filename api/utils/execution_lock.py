"""Per-page execution locks for mind map regeneration.

Two regenerations for the same page key run one after the other, so the map
stored last always reflects the fragments present when its run started.
Different pages regenerate in parallel, bounded by the global
``generation_semaphore``. The locks are process-local; entries are dropped as
soon as nobody holds or waits on them.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from api.config.settings import generation_semaphore
from api.utils.debug import print__pipeline_debug

# Internal registries, only touched from the event loop thread.
_page_locks: Dict[str, asyncio.Lock] = {}
_page_lock_users: Dict[str, int] = {}


@asynccontextmanager
async def page_execution_lock(page_key: str) -> AsyncIterator[None]:
    """Hold the page lock and one global generation slot."""
    lock = _page_locks.setdefault(page_key, asyncio.Lock())
    _page_lock_users[page_key] = _page_lock_users.get(page_key, 0) + 1
    if lock.locked():
        print__pipeline_debug(f"⏳ LOCK: waiting for running generation of {page_key}")
    try:
        async with lock:
            async with generation_semaphore:
                yield
    finally:
        remaining = _page_lock_users.get(page_key, 1) - 1
        if remaining <= 0:
            _page_lock_users.pop(page_key, None)
            _page_locks.pop(page_key, None)
        else:
            _page_lock_users[page_key] = remaining


def is_page_locked(page_key: str) -> bool:
    """Utility helper (mainly for debugging/tests) to check if a page is generating."""
    lock = _page_locks.get(page_key)
    return bool(lock and lock.locked())
