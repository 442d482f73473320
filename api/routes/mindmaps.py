"""
MODULE_DESCRIPTION: Mind Map Endpoints - Generate, Read and Follow Page Mind Maps

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

    POST /mindmaps/generate              regenerate the map of one page now
    GET  /mindmaps?page_url=...          stored map of one page (404 if none)
    GET  /mindmaps/events?page_url=...   server-sent events, one
                                         ``MIND_MAP_UPDATED`` per regeneration

The page URL is canonicalized to its page key before any lookup: default
ports dropped, trailing slashes removed, query parameters sorted. Two URLs
that differ only in those details share one mind map.

===================================================================================
SERVER-SENT EVENTS
===================================================================================

Each event is written as

    event: MIND_MAP_UPDATED
    data: {"type": "MIND_MAP_UPDATED", "pageUrl": "<page key>", "data": {...}}

A ``: keep-alive`` comment is sent after KEEPALIVE_SECONDS of silence. The
subscription is dropped when the client disconnects.

===================================================================================
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

import asyncio
import json

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from api.dependencies.store import get_notifier, get_pipeline
from api.models.requests import GenerateRequest
from api.models.responses import GenerateResponse, GenerationSummary, MindMapResponse
from api.utils.debug import print__api_debug
from mindmap_agent.pipeline import MindMapPipeline
from mindmap_agent.utils.page_key import resolve_page_key
from storage.notifier import MIND_MAP_UPDATED, MindMapNotifier

KEEPALIVE_SECONDS = 15.0

# ==============================================================================
# FASTAPI ROUTER INITIALIZATION
# ==============================================================================
router = APIRouter()


@router.post("/mindmaps/generate", response_model=GenerateResponse)
async def generate_mind_map(
    request: GenerateRequest, pipeline: MindMapPipeline = Depends(get_pipeline)
):
    """Regenerate the mind map of ``page_url`` from its stored fragments.

    Answers 200 in every case that reached the generation layer; ``ok`` tells
    whether a new map was stored.
    """
    page_key = resolve_page_key(request.page_url, fallback_to_raw=False)
    print__api_debug(f"🧠 GENERATE: {request.page_url} -> {page_key}")
    outcome = await pipeline.generate_for_page(request.page_url)
    summary = GenerationSummary.from_outcome(outcome)
    return GenerateResponse(
        ok=outcome.ok,
        page_key=page_key,
        map=outcome.mind_map,
        generation=summary,
        error=summary.error,
    )


@router.get("/mindmaps", response_model=MindMapResponse)
async def get_mind_map(
    page_url: str = Query(description="URL of the page"),
    pipeline: MindMapPipeline = Depends(get_pipeline),
):
    page_key = resolve_page_key(page_url)
    entry = await pipeline.get_mind_map(page_url)
    if entry is None:
        raise HTTPException(status_code=404, detail="No mind map stored for this page")
    return MindMapResponse(page_key=page_key, **entry)


def format_sse(event: dict) -> str:
    payload = json.dumps(event, ensure_ascii=False)
    return f"event: {event.get('type', MIND_MAP_UPDATED)}\ndata: {payload}\n\n"


async def stream_page_events(request: Request, notifier: MindMapNotifier, page_key: str):
    """Yield SSE frames for ``page_key`` until the client goes away."""
    queue = notifier.subscribe(page_key)
    try:
        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event)
    finally:
        notifier.unsubscribe(page_key, queue)
        print__api_debug(f"📴 EVENTS: subscriber for {page_key} closed")


@router.get("/mindmaps/events")
async def mind_map_events(
    request: Request,
    page_url: str = Query(description="URL of the page to follow"),
    notifier: MindMapNotifier = Depends(get_notifier),
):
    page_key = resolve_page_key(page_url)
    if not page_key:
        raise HTTPException(status_code=400, detail="page_url is required")
    return StreamingResponse(
        stream_page_events(request, notifier, page_key),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
