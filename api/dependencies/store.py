"""
MODULE_DESCRIPTION: Store and Pipeline Dependencies

FastAPI dependencies handing route handlers the shared key-value store, the
notifier and a ``MindMapPipeline`` bound to both. Tests replace ``get_store``
(and ``get_pipeline`` when they need a fake generation service) through
``app.dependency_overrides``.
"""

# CRITICAL: Set Windows event loop policy FIRST, before any other imports
import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Load environment variables early
from dotenv import load_dotenv

load_dotenv()

# Constants
try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[2]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

from fastapi import Depends

from mindmap_agent.pipeline import MindMapPipeline
from storage.factory import get_global_store
from storage.kv_store import KeyValueStore
from storage.notifier import MindMapNotifier, get_global_notifier


async def get_store() -> KeyValueStore:
    return await get_global_store()


def get_notifier() -> MindMapNotifier:
    return get_global_notifier()


async def get_pipeline(
    store: KeyValueStore = Depends(get_store),
    notifier: MindMapNotifier = Depends(get_notifier),
) -> MindMapPipeline:
    return MindMapPipeline(store, notifier=notifier)
