"""
Tests for MIND_MAP_UPDATED broadcasting and per-page execution locks.
"""

import asyncio
import os
import sys

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from dotenv import load_dotenv

load_dotenv()

try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(BASE_DIR))
except NameError:
    BASE_DIR = Path(os.getcwd())
    sys.path.insert(0, str(BASE_DIR))

import pytest

from api.utils import execution_lock
from api.utils.execution_lock import is_page_locked, page_execution_lock
from storage.notifier import MIND_MAP_UPDATED, MindMapNotifier


# ==============================================================================
# NOTIFIER
# ==============================================================================
@pytest.mark.asyncio
async def test_broadcast_reaches_only_page_subscribers():
    notifier = MindMapNotifier()
    page_a = notifier.subscribe("a")
    page_b = notifier.subscribe("b")

    delivered = await notifier.broadcast_updated("a", {"titulo_central": "x"})

    assert delivered == 1
    assert page_a.get_nowait() == {
        "type": MIND_MAP_UPDATED,
        "pageUrl": "a",
        "data": {"titulo_central": "x"},
    }
    assert page_b.empty()


@pytest.mark.asyncio
async def test_full_queue_drops_oldest_event():
    notifier = MindMapNotifier(queue_size=2)
    queue = notifier.subscribe("a")

    for n in range(3):
        await notifier.broadcast_updated("a", {"n": n})

    assert [queue.get_nowait()["data"]["n"] for _ in range(2)] == [1, 2]


@pytest.mark.asyncio
async def test_unsubscribe_removes_queue():
    notifier = MindMapNotifier()
    queue = notifier.subscribe("a")
    assert notifier.subscriber_count() == 1

    notifier.unsubscribe("a", queue)
    notifier.unsubscribe("a", queue)

    assert notifier.subscriber_count("a") == 0
    assert await notifier.broadcast_updated("a", {}) == 0


# ==============================================================================
# EXECUTION LOCKS
# ==============================================================================
@pytest.mark.asyncio
async def test_same_page_runs_are_serialized():
    events = []

    async def run(name):
        async with page_execution_lock("page"):
            events.append(f"{name}-start")
            await asyncio.sleep(0.01)
            events.append(f"{name}-end")

    await asyncio.gather(run("first"), run("second"))

    assert events == ["first-start", "first-end", "second-start", "second-end"]
    assert "page" not in execution_lock._page_locks
    assert "page" not in execution_lock._page_lock_users


@pytest.mark.asyncio
async def test_different_pages_run_in_parallel():
    events = []

    async def run(page):
        async with page_execution_lock(page):
            events.append(f"{page}-start")
            await asyncio.sleep(0.01)
            events.append(f"{page}-end")

    await asyncio.gather(run("a"), run("b"))

    assert events[:2] == ["a-start", "b-start"]


@pytest.mark.asyncio
async def test_is_page_locked_reflects_holder():
    assert not is_page_locked("p")
    async with page_execution_lock("p"):
        assert is_page_locked("p")
    assert not is_page_locked("p")


@pytest.mark.asyncio
async def test_lock_released_on_error():
    with pytest.raises(RuntimeError):
        async with page_execution_lock("boom"):
            raise RuntimeError("fail inside")
    assert "boom" not in execution_lock._page_locks
