"""
Tests for the key-value stores, typed repositories, store factory and the
locked-database retry decorator.
"""

import asyncio
import os
import sqlite3
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

import storage.globals as store_globals
from storage.config import GROUPS_INDEX_KEY, MIND_MAPS_KEY
from storage.factory import cleanup_store, create_store, get_global_store, initialize_store
from storage.kv_store import InMemoryKeyValueStore, SQLiteKeyValueStore
from storage.repositories import (
    FragmentStore,
    GroupIndexStore,
    MapStore,
    SettingsStore,
    clear_all_data,
)
from storage.retry_decorators import is_locked_database_error, retry_on_locked_database
from tests.helpers import make_fragment


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    if request.param == "memory":
        kv = InMemoryKeyValueStore()
    else:
        kv = await SQLiteKeyValueStore(str(tmp_path / "store.sqlite3")).open()
    yield kv
    await kv.close()


@pytest.fixture
def reset_global_store():
    store_globals._GLOBAL_STORE = None
    store_globals._STORE_INIT_LOCK = None
    yield
    store_globals._GLOBAL_STORE = None
    store_globals._STORE_INIT_LOCK = None


# ==============================================================================
# KEY-VALUE STORES
# ==============================================================================
@pytest.mark.asyncio
async def test_set_get_and_remove(store):
    await store.set_many({"a": {"n": 1}, "b": [1, 2], "c": "texto"})

    assert await store.get(["a", "c", "missing"]) == {"a": {"n": 1}, "c": "texto"}
    assert await store.get_value("missing", "default") == "default"

    await store.remove(["a", "unknown"])
    assert await store.get(["a"]) == {}
    print(f"✅ {type(store).__name__}: set/get/remove")


@pytest.mark.asyncio
async def test_get_all_keeps_first_insertion_order(store):
    await store.set("first", 1)
    await store.set("second", 2)
    await store.set("first", 10)

    assert list((await store.get_all()).items()) == [("first", 10), ("second", 2)]


@pytest.mark.asyncio
async def test_values_are_copied_on_write(store):
    value = {"items": ["a"]}
    await store.set("k", value)
    value["items"].append("b")

    assert await store.get_value("k") == {"items": ["a"]}


@pytest.mark.asyncio
async def test_concurrent_updates_are_not_lost(store):
    await store.set("counter", 0)

    async def bump():
        await store.update("counter", lambda current: current + 1, 0)

    await asyncio.gather(*(bump() for _ in range(20)))
    assert await store.get_value("counter") == 20


@pytest.mark.asyncio
async def test_sqlite_store_persists_across_connections(tmp_path):
    path = str(tmp_path / "persist.sqlite3")
    first = await SQLiteKeyValueStore(path).open()
    await first.set("k", {"ñ": "valor"})
    await first.close()

    second = await SQLiteKeyValueStore(path).open()
    assert await second.get_value("k") == {"ñ": "valor"}
    await second.close()


@pytest.mark.asyncio
async def test_sqlite_store_requires_open(tmp_path):
    kv = SQLiteKeyValueStore(str(tmp_path / "closed.sqlite3"))
    with pytest.raises(RuntimeError):
        await kv.get(["k"])


# ==============================================================================
# REPOSITORIES
# ==============================================================================
@pytest.mark.asyncio
async def test_fragment_store_skips_reserved_entries(store):
    fragments = FragmentStore(store)
    await fragments.set("m1", make_fragment("m1"))
    await GroupIndexStore(store).set({"g": {"key": "g", "title": "g", "items": [], "updated_at": ""}})
    await SettingsStore(store).set_api_key("secret")

    assert [f["source_id"] for f in await fragments.get_all()] == ["m1"]
    assert await fragments.get([GROUPS_INDEX_KEY, "m1"]) == [make_fragment("m1")]

    with pytest.raises(ValueError):
        await fragments.set(MIND_MAPS_KEY, make_fragment(MIND_MAPS_KEY))


@pytest.mark.asyncio
async def test_map_store_merges_pages(store):
    maps = MapStore(store)
    entry_a = {"data": {"x": 1}, "updated_at": "t1", "pageUrl": "https://a.example.com/"}
    entry_b = {"data": {"y": 2}, "updated_at": "t2", "pageUrl": "https://b.example.com/"}

    await asyncio.gather(maps.set_mind_map("a", entry_a), maps.set_mind_map("b", entry_b))

    assert await maps.get_all() == {"a": entry_a, "b": entry_b}
    assert await maps.get("a") == entry_a
    assert await maps.get("missing") is None


@pytest.mark.asyncio
async def test_settings_store_trims_and_clears(store):
    settings = SettingsStore(store)
    assert await settings.get_api_key() is None

    await settings.set_api_key("  secret  ")
    await settings.set_model(" models/gemini-1.5-pro ")
    assert await settings.get_api_key() == "secret"
    assert await settings.get_model() == "models/gemini-1.5-pro"

    await settings.clear_api_key()
    assert await settings.get_api_key() is None


@pytest.mark.asyncio
async def test_clear_all_data_keeps_settings(store):
    fragments = FragmentStore(store)
    await fragments.set("m1", make_fragment("m1"))
    await fragments.set("m2", make_fragment("m2"))
    await MapStore(store).set_mind_map("p", {"data": {}, "updated_at": "t", "pageUrl": None})
    await SettingsStore(store).set_api_key("secret")

    removed = await clear_all_data(store)

    assert removed == 2
    assert await fragments.get_all() == []
    assert await store.get_value(GROUPS_INDEX_KEY) == {}
    assert await store.get_value(MIND_MAPS_KEY) == {}
    assert await SettingsStore(store).get_api_key() == "secret"


# ==============================================================================
# FACTORY
# ==============================================================================
@pytest.mark.asyncio
async def test_create_store_backends(tmp_path):
    memory = await create_store("memory")
    assert isinstance(memory, InMemoryKeyValueStore)

    sqlite_store = await create_store("sqlite", str(tmp_path / "s.sqlite3"))
    assert isinstance(sqlite_store, SQLiteKeyValueStore)
    await sqlite_store.close()

    with pytest.raises(ValueError):
        await create_store("redis")


@pytest.mark.asyncio
async def test_initialize_store_falls_back_to_memory(tmp_path, reset_global_store):
    # A directory cannot be opened as a database file
    kv = await initialize_store("sqlite", str(tmp_path), fallback_enabled=True)

    assert isinstance(kv, InMemoryKeyValueStore)
    assert await get_global_store() is kv


@pytest.mark.asyncio
async def test_initialize_store_without_fallback_raises(tmp_path, reset_global_store):
    with pytest.raises(sqlite3.Error):
        await initialize_store("sqlite", str(tmp_path), fallback_enabled=False)
    assert store_globals._GLOBAL_STORE is None


@pytest.mark.asyncio
async def test_cleanup_store_clears_global(tmp_path, reset_global_store):
    await initialize_store("sqlite", str(tmp_path / "g.sqlite3"))
    assert store_globals._GLOBAL_STORE is not None

    await cleanup_store()
    assert store_globals._GLOBAL_STORE is None
    await cleanup_store()


# ==============================================================================
# RETRY DECORATOR
# ==============================================================================
def test_is_locked_database_error():
    assert is_locked_database_error(sqlite3.OperationalError("database is locked"))
    assert is_locked_database_error(sqlite3.OperationalError("database table is BUSY"))
    assert not is_locked_database_error(sqlite3.OperationalError("no such table: x"))
    assert not is_locked_database_error(ValueError("locked"))


@pytest.mark.asyncio
async def test_retry_recovers_from_transient_lock():
    attempts = []

    @retry_on_locked_database(max_retries=3)
    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise sqlite3.OperationalError("database is locked")
        return "ok"

    assert await flaky() == "ok"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_retry_gives_up_and_skips_other_errors():
    attempts = []

    @retry_on_locked_database(max_retries=1)
    async def always_locked():
        attempts.append(1)
        raise sqlite3.OperationalError("database is locked")

    with pytest.raises(sqlite3.OperationalError):
        await always_locked()
    assert len(attempts) == 2

    @retry_on_locked_database(max_retries=3)
    async def broken():
        attempts.append(1)
        raise sqlite3.OperationalError("no such table: kv_store")

    with pytest.raises(sqlite3.OperationalError):
        await broken()
    assert len(attempts) == 3
