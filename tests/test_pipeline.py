"""
Tests for the fragment pipeline: local summaries, persistence, group
rebuilds, regeneration and MIND_MAP_UPDATED notifications.
"""

import asyncio
import json
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

from mindmap_agent.pipeline import (
    DEFAULT_TITLE,
    SKIP_NO_PAGE_KEY,
    MindMapPipeline,
    build_fragment,
)
from mindmap_agent.utils.orchestrator import SKIP_NO_CREDENTIAL, SKIP_NO_RELEVANT_FRAGMENTS
from mindmap_agent.utils.page_key import normalize_page_url
from storage.kv_store import InMemoryKeyValueStore
from storage.notifier import MIND_MAP_UPDATED, MindMapNotifier
from tests.helpers import (
    PAGE_URL,
    TEST_API_BASE,
    TEST_API_KEY,
    VALID_FLAT_MAP,
    FakeGemini,
    always,
    clear_generation_env,
    text_envelope,
)

PAGE_KEY = normalize_page_url(PAGE_URL)
OTHER_URL = "https://chat.example.com/c/other"
VALID_RESPONSE = always(200, text_envelope(json.dumps(VALID_FLAT_MAP)))


@pytest.fixture(autouse=True)
def generation_env(monkeypatch):
    clear_generation_env()
    monkeypatch.setenv("GEMINI_API_BASE", TEST_API_BASE)


def make_pipeline(responder=VALID_RESPONSE):
    fake = FakeGemini(responder)
    pipeline = MindMapPipeline(
        InMemoryKeyValueStore(), notifier=MindMapNotifier(), transport=fake.transport
    )
    return pipeline, fake


async def with_credential(pipeline):
    await pipeline.settings.set_api_key(TEST_API_KEY)
    return pipeline


# ==============================================================================
# LOCAL SUMMARY
# ==============================================================================
def test_build_fragment_summary_and_title():
    text = "Uno dos tres cuatro cinco seis siete ocho nueve diez once doce trece\n\nsegunda   línea"
    fragment = build_fragment(text, "m1", PAGE_URL + "/", 2, now="2024-01-01T00:00:00+00:00")

    assert fragment["title"] == "Uno dos tres cuatro cinco seis siete ocho nueve diez once doce"
    assert fragment["summary"] == (
        "Uno dos tres cuatro cinco seis siete ocho nueve diez once doce trece segunda línea"
    )
    assert fragment["original_text"] == text
    assert fragment["normalized_page"] == PAGE_KEY
    assert fragment["paragraphIndex"] == 2
    assert fragment["key_points"] == [] and fragment["entities"] == []
    assert fragment["created_at"] == "2024-01-01T00:00:00+00:00"


def test_build_fragment_limits():
    fragment = build_fragment("x" * 500, "m1")
    assert len(fragment["summary"]) == 200
    assert len(fragment["title"]) == 120
    assert fragment["pageUrl"] is None
    assert fragment["normalized_page"] is None


def test_build_fragment_edge_cases():
    assert build_fragment("\nsolo segunda línea", "m1")["title"] == DEFAULT_TITLE
    assert build_fragment("texto", "m1", paragraph_index=True)["paragraphIndex"] is None
    assert build_fragment("texto", "m1", page_url="not a url")["normalized_page"] is None


# ==============================================================================
# SAVE
# ==============================================================================
@pytest.mark.asyncio
async def test_save_without_page_url_skips_generation():
    pipeline, fake = make_pipeline()
    await with_credential(pipeline)

    fragment, outcome = await pipeline.save_fragment("Python asíncrono", "m1")

    assert outcome is None
    assert fake.calls == []
    assert [f["source_id"] for f in await pipeline.list_fragments()] == ["m1"]
    groups = await pipeline.get_groups_index()
    assert groups["python"]["items"] == ["m1"]
    assert fragment["title"] == "Python asíncrono"


@pytest.mark.asyncio
async def test_save_regenerates_stores_and_broadcasts():
    pipeline, fake = make_pipeline()
    await with_credential(pipeline)
    queue = pipeline.notifier.subscribe(PAGE_KEY)

    _, outcome = await pipeline.save_fragment("Modelos de lenguaje", "m1", page_url=PAGE_URL)

    assert outcome.ok
    assert len(fake.calls) == 1
    entry = await pipeline.get_mind_map(PAGE_URL + "?")
    assert entry["data"] == VALID_FLAT_MAP
    assert entry["pageUrl"] == PAGE_URL
    assert entry["updated_at"]
    event = queue.get_nowait()
    assert event["type"] == MIND_MAP_UPDATED
    assert event["pageUrl"] == PAGE_KEY
    assert event["data"] == VALID_FLAT_MAP
    print("✅ Save regenerated, stored and broadcast the page mind map")


@pytest.mark.asyncio
async def test_save_without_credential_still_saves():
    pipeline, fake = make_pipeline()

    _, outcome = await pipeline.save_fragment("Modelos de lenguaje", "m1", page_url=PAGE_URL)

    assert outcome.status == "skipped"
    assert outcome.reason == SKIP_NO_CREDENTIAL
    assert fake.calls == []
    assert await pipeline.get_mind_map(PAGE_URL) is None
    assert len(await pipeline.list_fragments(PAGE_URL)) == 1


@pytest.mark.asyncio
async def test_save_uses_environment_credential(monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "env-key")
    pipeline, fake = make_pipeline()

    _, outcome = await pipeline.save_fragment("Modelos de lenguaje", "m1", page_url=PAGE_URL)

    assert outcome.ok
    assert fake.calls[0]["key"] == "env-key"


@pytest.mark.asyncio
async def test_stored_model_overrides_default():
    pipeline, fake = make_pipeline()
    await with_credential(pipeline)
    await pipeline.settings.set_model("models/gemini-1.5-pro")

    await pipeline.save_fragment("Modelos de lenguaje", "m1", page_url=PAGE_URL)

    assert fake.models_called == ["models/gemini-1.5-pro"]


@pytest.mark.asyncio
async def test_failed_generation_keeps_previous_map():
    pipeline, _ = make_pipeline()
    await with_credential(pipeline)
    await pipeline.save_fragment("Modelos de lenguaje", "m1", page_url=PAGE_URL)

    pipeline.orchestrator.transport = FakeGemini(always(500, {"error": "boom"})).transport
    _, outcome = await pipeline.save_fragment("Más texto", "m2", page_url=PAGE_URL)

    assert outcome.status == "error"
    assert outcome.error.error_type == "api_error"
    assert (await pipeline.get_mind_map(PAGE_URL))["data"] == VALID_FLAT_MAP


@pytest.mark.asyncio
async def test_save_rejects_blank_input():
    pipeline, _ = make_pipeline()
    with pytest.raises(ValueError):
        await pipeline.save_fragment("texto", "   ")
    with pytest.raises(ValueError):
        await pipeline.save_fragment("   ", "m1")


# ==============================================================================
# DELETE / CLEAR / REMOVE MATCHING
# ==============================================================================
@pytest.mark.asyncio
async def test_delete_regenerates_page():
    pipeline, fake = make_pipeline()
    await with_credential(pipeline)
    await pipeline.save_fragment("Primero", "m1", page_url=PAGE_URL)
    await pipeline.save_fragment("Segundo", "m2", page_url=PAGE_URL)

    result = await pipeline.delete_fragment("m1")

    assert result.found
    assert result.outcome.ok
    assert len(fake.calls) == 3
    assert "[ID:m1]" not in fake.calls[-1]["body"]["contents"][0]["parts"][0]["text"]
    assert [f["source_id"] for f in await pipeline.list_fragments()] == ["m2"]


@pytest.mark.asyncio
async def test_delete_last_fragment_keeps_stale_map():
    pipeline, _ = make_pipeline()
    await with_credential(pipeline)
    await pipeline.save_fragment("Único", "m1", page_url=PAGE_URL)

    result = await pipeline.delete_fragment("m1")

    assert result.outcome.reason == SKIP_NO_RELEVANT_FRAGMENTS
    assert await pipeline.get_mind_map(PAGE_URL) is not None


@pytest.mark.asyncio
async def test_delete_unknown_fragment():
    pipeline, fake = make_pipeline()
    result = await pipeline.delete_fragment("missing")
    assert not result.found
    assert result.outcome is None
    assert fake.calls == []


@pytest.mark.asyncio
async def test_clear_all():
    pipeline, _ = make_pipeline()
    await with_credential(pipeline)
    await pipeline.save_fragment("Uno", "m1", page_url=PAGE_URL)
    await pipeline.save_fragment("Dos", "m2")

    assert await pipeline.clear_all() == 2
    assert await pipeline.list_fragments() == []
    assert await pipeline.get_groups_index() == {}
    assert await pipeline.get_mind_map(PAGE_URL) is None
    assert await pipeline.settings.get_api_key() == TEST_API_KEY


@pytest.mark.asyncio
async def test_remove_matching_is_case_insensitive_and_regenerates():
    pipeline, fake = make_pipeline()
    await with_credential(pipeline)
    await pipeline.save_fragment("Texto con FRASE prohibida", "m1", page_url=PAGE_URL)
    await pipeline.save_fragment("Texto limpio", "m2", page_url=PAGE_URL)
    await pipeline.save_fragment("otra frase prohibida aquí", "m3", page_url=OTHER_URL)
    calls_before = len(fake.calls)

    result = await pipeline.remove_matching("  frase PROHIBIDA ")

    assert result.removed == 2
    assert result.keys == ["m1", "m3"]
    assert set(result.outcomes) == {PAGE_KEY, normalize_page_url(OTHER_URL)}
    assert result.outcomes[PAGE_KEY].ok
    assert result.outcomes[normalize_page_url(OTHER_URL)].reason == SKIP_NO_RELEVANT_FRAGMENTS
    assert len(fake.calls) == calls_before + 1
    assert [f["source_id"] for f in await pipeline.list_fragments()] == ["m2"]


@pytest.mark.asyncio
async def test_remove_matching_blank_or_unmatched_is_noop():
    pipeline, _ = make_pipeline()
    await pipeline.save_fragment("Texto", "m1")

    assert (await pipeline.remove_matching("   ")).removed == 0
    assert (await pipeline.remove_matching("inexistente")).removed == 0
    assert len(await pipeline.list_fragments()) == 1


# ==============================================================================
# GENERATE / READS
# ==============================================================================
@pytest.mark.asyncio
async def test_generate_for_unparsable_page_is_skipped():
    pipeline, fake = make_pipeline()
    await with_credential(pipeline)

    outcome = await pipeline.generate_for_page("not a url")

    assert outcome.reason == SKIP_NO_PAGE_KEY
    assert fake.calls == []


@pytest.mark.asyncio
async def test_list_fragments_filters_by_page():
    pipeline, _ = make_pipeline()
    await pipeline.save_fragment("Uno", "m1", page_url=PAGE_URL)
    await pipeline.save_fragment("Dos", "m2", page_url=OTHER_URL)
    await pipeline.save_fragment("Tres", "m3")

    assert [f["source_id"] for f in await pipeline.list_fragments(PAGE_URL + "/")] == ["m1"]
    assert len(await pipeline.list_fragments()) == 3
