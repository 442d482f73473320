"""Creation and lifecycle of the global key-value store.

``initialize_store`` runs from the FastAPI lifespan: it opens the configured
backend and falls back to ``InMemoryKeyValueStore`` when SQLite cannot be
opened and the fallback is enabled. ``get_global_store`` is the access point
for request handlers; it initializes lazily with double-checked locking when
startup did not run (scripts, tests).
"""

import asyncio
import sqlite3
import traceback

import storage.globals as store_globals
from api.config.settings import (
    INMEMORY_FALLBACK_ENABLED,
    MINDMAP_STORE_BACKEND,
    MINDMAP_STORE_PATH,
)
from api.utils.debug import print__storage_debug
from storage.kv_store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore


async def create_store(
    backend: str = MINDMAP_STORE_BACKEND, path: str = MINDMAP_STORE_PATH
) -> KeyValueStore:
    """Open a store for ``backend`` (``sqlite`` or ``memory``)."""
    if backend == "memory":
        print__storage_debug("🧠 STORE CREATE: using in-memory store")
        return InMemoryKeyValueStore()
    if backend == "sqlite":
        print__storage_debug(f"🗄️ STORE CREATE: opening SQLite store at {path}")
        return await SQLiteKeyValueStore(path).open()
    raise ValueError(f"Unknown store backend: {backend!r}")


async def initialize_store(
    backend: str = MINDMAP_STORE_BACKEND,
    path: str = MINDMAP_STORE_PATH,
    fallback_enabled: bool = INMEMORY_FALLBACK_ENABLED,
) -> KeyValueStore:
    """Set the global store once; safe to call repeatedly."""
    if store_globals._GLOBAL_STORE is not None:
        return store_globals._GLOBAL_STORE

    try:
        print__storage_debug("🚀 STORE INIT: initializing key-value store...")
        store_globals._GLOBAL_STORE = await create_store(backend, path)
        print__storage_debug(
            f"✅ STORE INIT: {type(store_globals._GLOBAL_STORE).__name__} ready"
        )
    except (OSError, sqlite3.Error, RuntimeError) as exc:
        print__storage_debug(f"❌ STORE INIT: store initialization failed: {exc}")
        print__storage_debug(traceback.format_exc())
        if not fallback_enabled:
            raise
        print__storage_debug("🔄 STORE INIT: falling back to InMemoryKeyValueStore...")
        store_globals._GLOBAL_STORE = InMemoryKeyValueStore()
    return store_globals._GLOBAL_STORE


async def get_global_store() -> KeyValueStore:
    """Shared store instance, created on first use."""
    if store_globals._STORE_INIT_LOCK is None:
        store_globals._STORE_INIT_LOCK = asyncio.Lock()

    if store_globals._GLOBAL_STORE is None:
        async with store_globals._STORE_INIT_LOCK:
            if store_globals._GLOBAL_STORE is None:
                await initialize_store()
    return store_globals._GLOBAL_STORE


async def cleanup_store() -> None:
    """Close the global store on shutdown; the global is always cleared."""
    print__storage_debug("🧹 STORE CLEANUP: starting store cleanup...")
    store = store_globals._GLOBAL_STORE
    if store is None:
        print__storage_debug("ℹ️ STORE CLEANUP: no store to clean up")
        return
    try:
        await store.close()
    except Exception as exc:
        print__storage_debug(f"⚠️ STORE CLEANUP: error while closing store: {exc}")
    finally:
        store_globals._GLOBAL_STORE = None
        print__storage_debug("✅ STORE CLEANUP: store cleanup completed")
