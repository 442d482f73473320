"""Async key-value stores holding JSON values.

``KeyValueStore`` mirrors the browser extension storage the service grew out
of: values are JSON documents addressed by string keys, and ``get_all`` keeps
insertion order. Two backends ship:

- ``InMemoryKeyValueStore``: a dict; used by tests and as the fallback when
  the SQLite file cannot be opened.
- ``SQLiteKeyValueStore``: one table of ``(key, value)`` rows; the blocking
  ``sqlite3`` calls run in the default executor.

``update`` performs read-modify-write of a single key under a store-wide
``asyncio.Lock`` so two coroutines updating ``mindMaps`` never lose a write.
"""

import asyncio
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from api.utils.debug import print__storage_debug
from storage.config import SQLITE_TIMEOUT, TABLE_NAME
from storage.retry_decorators import retry_on_locked_database


class KeyValueStore(ABC):
    """Async interface shared by every backend."""

    def __init__(self):
        self._update_lock: Optional[asyncio.Lock] = None

    @abstractmethod
    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Values for the keys that exist; missing keys are omitted."""

    @abstractmethod
    async def get_all(self) -> Dict[str, Any]:
        """Every entry, in insertion order."""

    @abstractmethod
    async def set_many(self, items: Dict[str, Any]) -> None:
        """Insert or replace several entries at once."""

    @abstractmethod
    async def remove(self, keys: Iterable[str]) -> None:
        """Delete the given keys; unknown keys are ignored."""

    async def close(self) -> None:
        return None

    async def get_value(self, key: str, default: Any = None) -> Any:
        return (await self.get([key])).get(key, default)

    async def set(self, key: str, value: Any) -> None:
        await self.set_many({key: value})

    async def update(self, key: str, updater: Callable[[Any], Any], default: Any = None) -> Any:
        """Atomically replace ``key`` with ``updater(current)`` and return it."""
        if self._update_lock is None:
            self._update_lock = asyncio.Lock()
        async with self._update_lock:
            current = await self.get_value(key, default)
            new_value = updater(current)
            await self.set(key, new_value)
            return new_value


# ==============================================================================
# IN-MEMORY BACKEND
# ==============================================================================
class InMemoryKeyValueStore(KeyValueStore):
    """Non-persistent store; values are deep-copied through JSON on write."""

    def __init__(self):
        super().__init__()
        self._data: Dict[str, str] = {}

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {key: json.loads(self._data[key]) for key in keys if key in self._data}

    async def get_all(self) -> Dict[str, Any]:
        return {key: json.loads(raw) for key, raw in self._data.items()}

    async def set_many(self, items: Dict[str, Any]) -> None:
        for key, value in items.items():
            self._data[key] = json.dumps(value, ensure_ascii=False)

    async def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)


# ==============================================================================
# SQLITE BACKEND
# ==============================================================================
class SQLiteKeyValueStore(KeyValueStore):
    """File-backed store.

    A single connection is shared by the executor threads and serialized with
    a ``threading.Lock``. Upserts keep the original rowid, so ``get_all``
    returns entries in first-insertion order.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = str(path)
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

    def _open(self) -> None:
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, timeout=SQLITE_TIMEOUT, check_same_thread=False)
        conn.execute(
            f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} ("
            "key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )
        conn.commit()
        self._conn = conn

    async def open(self) -> "SQLiteKeyValueStore":
        await self._run(self._open)
        print__storage_debug(f"✅ SQLITE STORE: opened {self.path}")
        return self

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()

        def locked():
            with self._lock:
                return func(*args)

        return await loop.run_in_executor(None, locked)

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SQLite store is not open")
        return self._conn

    def _select(self, keys: List[str]) -> Dict[str, Any]:
        conn = self._require_conn()
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        rows = conn.execute(
            f"SELECT key, value FROM {TABLE_NAME} WHERE key IN ({placeholders}) ORDER BY rowid",
            keys,
        ).fetchall()
        return {key: json.loads(value) for key, value in rows}

    def _select_all(self) -> Dict[str, Any]:
        rows = self._require_conn().execute(
            f"SELECT key, value FROM {TABLE_NAME} ORDER BY rowid"
        ).fetchall()
        return {key: json.loads(value) for key, value in rows}

    def _upsert(self, items: Dict[str, Any]) -> None:
        conn = self._require_conn()
        with conn:
            conn.executemany(
                f"INSERT INTO {TABLE_NAME} (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                [(key, json.dumps(value, ensure_ascii=False)) for key, value in items.items()],
            )

    def _delete(self, keys: List[str]) -> None:
        conn = self._require_conn()
        with conn:
            conn.executemany(f"DELETE FROM {TABLE_NAME} WHERE key = ?", [(k,) for k in keys])

    def _close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return await self._run(self._select, list(keys))

    async def get_all(self) -> Dict[str, Any]:
        return await self._run(self._select_all)

    @retry_on_locked_database()
    async def set_many(self, items: Dict[str, Any]) -> None:
        if items:
            await self._run(self._upsert, dict(items))

    @retry_on_locked_database()
    async def remove(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if keys:
            await self._run(self._delete, keys)

    async def close(self) -> None:
        await self._run(self._close)
        print__storage_debug(f"🧹 SQLITE STORE: closed {self.path}")
