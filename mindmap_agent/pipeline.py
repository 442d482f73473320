"""Fragment lifecycle and mind map regeneration.

``MindMapPipeline`` is what the HTTP routes call. Every mutation of the
fragment set follows the same sequence:

1. persist the change in the key-value store
2. rebuild the groups index from all fragments (cheap, synchronous)
3. regenerate the mind map of each affected page (expensive, async)

Regenerations for one page key are serialized by ``page_execution_lock``.
Generation failures are returned as ``GenerationOutcome`` values; only store
failures propagate as exceptions.
"""

import re
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from api.utils.debug import print__pipeline_debug
from api.utils.execution_lock import page_execution_lock
from mindmap_agent.utils.config import load_generation_config
from mindmap_agent.utils.grouping import rebuild_groups_index
from mindmap_agent.utils.orchestrator import GenerationOrchestrator
from mindmap_agent.utils.page_key import fragment_page_key, resolve_page_key
from mindmap_agent.utils.state import Fragment, Group, GenerationOutcome, MindMapEntry
from storage.kv_store import KeyValueStore
from storage.notifier import MindMapNotifier, get_global_notifier
from storage.repositories import (
    FragmentStore,
    GroupIndexStore,
    MapStore,
    SettingsStore,
    clear_all_data,
)

# ==============================================================================
# CONSTANTS
# ==============================================================================
SUMMARY_CHARS = 200
TITLE_WORDS = 12
TITLE_CHARS = 120
DEFAULT_TITLE = "Mensaje guardado"

SKIP_NO_PAGE_KEY = "no_page_key"

_WHITESPACE_RUN = re.compile(r"\s+")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ==============================================================================
# FRAGMENT CONSTRUCTION
# ==============================================================================
def build_fragment(
    message_text: str,
    source_id: str,
    page_url: Optional[str] = None,
    paragraph_index: Optional[int] = None,
    now: Optional[str] = None,
) -> Fragment:
    """Summarize ``message_text`` locally into a fragment record.

    The summary is the text with whitespace runs collapsed, cut to 200
    characters. The title is the first 12 words of the first line, cut to
    120 characters. No generation call is made per fragment.
    """
    summary = _WHITESPACE_RUN.sub(" ", message_text)[:SUMMARY_CHARS]
    first_line = message_text.split("\n")[0]
    title = " ".join(first_line.split(" ")[:TITLE_WORDS])[:TITLE_CHARS]
    if isinstance(paragraph_index, bool) or not isinstance(paragraph_index, int):
        paragraph_index = None

    return Fragment(
        source_id=source_id,
        title=title or DEFAULT_TITLE,
        summary=summary,
        key_points=[],
        actions=[],
        entities=[],
        original_text=message_text,
        pageUrl=page_url or None,
        normalized_page=resolve_page_key(page_url, fallback_to_raw=False),
        paragraphIndex=paragraph_index,
        created_at=now or _now(),
    )


# ==============================================================================
# RESULTS
# ==============================================================================
@dataclass
class DeletionResult:
    source_id: str
    found: bool
    outcome: Optional[GenerationOutcome] = None


@dataclass
class RemovalResult:
    removed: int = 0
    keys: List[str] = field(default_factory=list)
    outcomes: Dict[str, GenerationOutcome] = field(default_factory=dict)


# ==============================================================================
# PIPELINE
# ==============================================================================
class MindMapPipeline:
    """Save, delete and regenerate, bound to one key-value store.

    Args:
        store: Backing key-value store.
        notifier: Receives ``MIND_MAP_UPDATED`` broadcasts; defaults to the
            process-wide notifier.
        orchestrator: Generation orchestrator; defaults to one using
            ``transport`` for its HTTP client.
        transport: Optional httpx transport for the default orchestrator.
    """

    def __init__(
        self,
        store: KeyValueStore,
        notifier: Optional[MindMapNotifier] = None,
        orchestrator: Optional[GenerationOrchestrator] = None,
        transport=None,
    ):
        self.store = store
        self.fragments = FragmentStore(store)
        self.groups = GroupIndexStore(store)
        self.maps = MapStore(store)
        self.settings = SettingsStore(store)
        self.notifier = notifier or get_global_notifier()
        self.orchestrator = orchestrator or GenerationOrchestrator(transport=transport)

    # --------------------------------------------------------------------------
    # Groups
    # --------------------------------------------------------------------------
    async def rebuild_groups(self) -> Dict[str, Group]:
        groups = rebuild_groups_index(await self.fragments.get_all())
        await self.groups.set(groups)
        return groups

    async def _rebuild_groups_logged(self) -> None:
        # Rebuild failures are logged, not raised
        try:
            await self.rebuild_groups()
        except Exception as exc:
            print__pipeline_debug(f"❌ GROUPS: rebuild failed: {exc}")
            print__pipeline_debug(traceback.format_exc())

    # --------------------------------------------------------------------------
    # Mutations
    # --------------------------------------------------------------------------
    async def save_fragment(
        self,
        message_text: str,
        source_id: str,
        page_url: Optional[str] = None,
        paragraph_index: Optional[int] = None,
    ) -> Tuple[Fragment, Optional[GenerationOutcome]]:
        """Store a captured fragment and regenerate its page's map."""
        if not isinstance(source_id, str) or not source_id.strip():
            raise ValueError("source_id must be a non-empty string")
        if not isinstance(message_text, str) or not message_text.strip():
            raise ValueError("message_text must be a non-empty string")

        print__pipeline_debug(f"1 - SAVE: fragment {source_id} for page {page_url}")
        fragment = build_fragment(message_text, source_id.strip(), page_url, paragraph_index)
        await self.fragments.set(fragment["source_id"], fragment)

        print__pipeline_debug("2 - SAVE: rebuilding groups index")
        await self._rebuild_groups_logged()

        outcome = None
        if page_url:
            print__pipeline_debug("3 - SAVE: regenerating page mind map")
            outcome = await self.generate_for_page(page_url)
        return fragment, outcome

    async def delete_fragment(self, source_id: str) -> DeletionResult:
        """Remove one fragment and regenerate the map of the page it came from."""
        existing = await self.fragments.get([source_id])
        fragment = existing[0] if existing else None
        await self.fragments.remove([source_id])
        await self.rebuild_groups()

        result = DeletionResult(source_id=source_id, found=fragment is not None)
        if fragment is not None:
            page_key = fragment_page_key(fragment)
            if page_key:
                result.outcome = await self.generate_for_page(
                    fragment.get("pageUrl"), pre_normalized=page_key
                )
        print__pipeline_debug(f"🗑️ DELETE: {source_id} (found={result.found})")
        return result

    async def clear_all(self) -> int:
        """Drop every fragment, group and map. Settings survive."""
        return await clear_all_data(self.store)

    async def remove_matching(self, pattern: str) -> RemovalResult:
        """Remove fragments whose title or text contains ``pattern`` (any case)."""
        needle = (pattern or "").strip().lower()
        if not needle:
            return RemovalResult()

        matched: List[str] = []
        affected_pages: List[str] = []
        for fragment in await self.fragments.get_all():
            title = str(fragment.get("title") or "").lower()
            text = str(fragment.get("original_text") or "").lower()
            if needle in title or needle in text:
                matched.append(fragment["source_id"])
                page_key = fragment_page_key(fragment)
                if page_key and page_key not in affected_pages:
                    affected_pages.append(page_key)

        if not matched:
            return RemovalResult()

        await self.fragments.remove(matched)
        await self._rebuild_groups_logged()

        result = RemovalResult(removed=len(matched), keys=matched)
        for page_key in affected_pages:
            result.outcomes[page_key] = await self.generate_for_page(pre_normalized=page_key)
        print__pipeline_debug(
            f"🧹 REMOVE MATCHING: {len(matched)} fragments, {len(affected_pages)} pages regenerated"
        )
        return result

    # --------------------------------------------------------------------------
    # Generation
    # --------------------------------------------------------------------------
    async def generate_for_page(
        self, page_url: Optional[str] = None, pre_normalized: Optional[str] = None
    ) -> GenerationOutcome:
        """Regenerate, persist and broadcast the mind map of one page."""
        page_key = pre_normalized or resolve_page_key(page_url, fallback_to_raw=False)
        if not page_key:
            print__pipeline_debug(f"⏭️ GENERATE PAGE: no page key for {page_url!r}")
            return GenerationOutcome.skipped(SKIP_NO_PAGE_KEY)

        async with page_execution_lock(page_key):
            config = await load_generation_config(self.settings)
            fragments = await self.fragments.get_all()
            outcome = await self.orchestrator.generate(page_key, fragments, config)
            if not outcome.ok:
                return outcome

            source_url = page_url or next(
                (
                    f.get("pageUrl")
                    for f in fragments
                    if f.get("pageUrl") and fragment_page_key(f) == page_key
                ),
                None,
            )
            entry = MindMapEntry(data=outcome.mind_map, updated_at=_now(), pageUrl=source_url)
            await self.maps.set_mind_map(page_key, entry)
            await self.notifier.broadcast_updated(page_key, outcome.mind_map)
            return outcome

    # --------------------------------------------------------------------------
    # Reads
    # --------------------------------------------------------------------------
    async def get_mind_map(self, page_url: str) -> Optional[MindMapEntry]:
        page_key = resolve_page_key(page_url)
        if not page_key:
            return None
        return await self.maps.get(page_key)

    async def get_groups_index(self) -> Dict[str, Group]:
        return await self.groups.get()

    async def list_fragments(self, page_url: Optional[str] = None) -> List[Fragment]:
        fragments = await self.fragments.get_all()
        if not page_url:
            return fragments
        page_key = resolve_page_key(page_url)
        return [f for f in fragments if fragment_page_key(f) == page_key]
