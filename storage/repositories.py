"""Typed views over the shared key-value store.

Layout of the store:

- one entry per fragment, keyed by its ``source_id``
- ``groupsIndex``: mapping of group key to group
- ``mindMaps``: mapping of page key to ``{data, updated_at, pageUrl}``
- ``geminiApiKey`` and ``geminiModel``: settings overrides
"""

from typing import Dict, Iterable, List, Optional

from api.utils.debug import print__storage_debug
from mindmap_agent.utils.state import Fragment, Group, MindMapEntry
from storage.config import (
    API_KEY_KEY,
    GROUPS_INDEX_KEY,
    MIND_MAPS_KEY,
    MODEL_KEY,
    RESERVED_KEYS,
)
from storage.kv_store import KeyValueStore


def is_fragment(key: str, value) -> bool:
    return key not in RESERVED_KEYS and isinstance(value, dict) and bool(value.get("source_id"))


# ==============================================================================
# FRAGMENTS
# ==============================================================================
class FragmentStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get(self, ids: Iterable[str]) -> List[Fragment]:
        found = await self.store.get([i for i in ids if i not in RESERVED_KEYS])
        return [value for key, value in found.items() if is_fragment(key, value)]

    async def set(self, source_id: str, fragment: Fragment) -> None:
        if source_id in RESERVED_KEYS:
            raise ValueError(f"{source_id!r} is a reserved store key")
        await self.store.set(source_id, fragment)

    async def remove(self, ids: Iterable[str]) -> None:
        await self.store.remove([i for i in ids if i not in RESERVED_KEYS])

    async def get_all(self) -> List[Fragment]:
        """Every stored fragment in insertion order."""
        entries = await self.store.get_all()
        return [value for key, value in entries.items() if is_fragment(key, value)]


# ==============================================================================
# GROUPS
# ==============================================================================
class GroupIndexStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get(self) -> Dict[str, Group]:
        value = await self.store.get_value(GROUPS_INDEX_KEY, {})
        return value if isinstance(value, dict) else {}

    async def set(self, groups: Dict[str, Group]) -> None:
        await self.store.set(GROUPS_INDEX_KEY, groups)
        print__storage_debug(f"💾 GROUPS: stored {len(groups)} groups")


# ==============================================================================
# MIND MAPS
# ==============================================================================
class MapStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get_all(self) -> Dict[str, MindMapEntry]:
        value = await self.store.get_value(MIND_MAPS_KEY, {})
        return value if isinstance(value, dict) else {}

    async def get(self, page_key: str) -> Optional[MindMapEntry]:
        return (await self.get_all()).get(page_key)

    async def set_mind_map(self, page_key: str, entry: MindMapEntry) -> None:
        """Store ``entry`` for ``page_key``, keeping the maps of other pages."""

        def merge(current):
            maps = dict(current) if isinstance(current, dict) else {}
            maps[page_key] = entry
            return maps

        await self.store.update(MIND_MAPS_KEY, merge, {})
        print__storage_debug(f"💾 MIND MAPS: stored map for {page_key}")


# ==============================================================================
# SETTINGS
# ==============================================================================
class SettingsStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def _get_text(self, key: str) -> Optional[str]:
        value = await self.store.get_value(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    async def get_api_key(self) -> Optional[str]:
        return await self._get_text(API_KEY_KEY)

    async def set_api_key(self, api_key: str) -> None:
        await self.store.set(API_KEY_KEY, api_key.strip())

    async def clear_api_key(self) -> None:
        await self.store.remove([API_KEY_KEY])

    async def get_model(self) -> Optional[str]:
        return await self._get_text(MODEL_KEY)

    async def set_model(self, model: str) -> None:
        await self.store.set(MODEL_KEY, model.strip())


async def clear_all_data(store: KeyValueStore) -> int:
    """Remove every fragment plus the group and map indexes.

    Both indexes are written back as empty mappings. Settings are kept.
    Returns the number of fragments removed.
    """
    entries = await store.get_all()
    fragment_ids = [key for key, value in entries.items() if is_fragment(key, value)]
    await store.remove(fragment_ids + [GROUPS_INDEX_KEY, MIND_MAPS_KEY])
    await store.set_many({GROUPS_INDEX_KEY: {}, MIND_MAPS_KEY: {}})
    print__storage_debug(f"🧹 CLEAR ALL: removed {len(fragment_ids)} fragments")
    return len(fragment_ids)
