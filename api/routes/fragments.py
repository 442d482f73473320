"""
MODULE_DESCRIPTION: Fragment Endpoints - Capture, List and Remove Chat Snippets

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Endpoints used by the capture client to store chat fragments and manage them:

    POST   /fragments                  save one fragment, regenerate its page map
    GET    /fragments?page_url=...     list fragments (optionally for one page)
    DELETE /fragments/{source_id}      delete one fragment, regenerate its page map
    DELETE /fragments                  delete every fragment, group and map
    POST   /fragments/remove-matching  delete fragments containing a phrase

Each mutation rebuilds the groups index. Mind map regeneration runs inside
the request; its result is reported in-band under ``generation`` so a failed
generation never hides a successful save.

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

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies.store import get_pipeline
from api.models.requests import RemoveMatchingRequest, SaveFragmentRequest
from api.models.responses import (
    ClearAllResponse,
    DeleteFragmentResponse,
    FragmentListResponse,
    RemoveMatchingResponse,
    SaveFragmentResponse,
    GenerationSummary,
    summarize,
)
from api.utils.debug import print__api_debug
from mindmap_agent.pipeline import MindMapPipeline

# ==============================================================================
# FASTAPI ROUTER INITIALIZATION
# ==============================================================================
router = APIRouter()


@router.post("/fragments", response_model=SaveFragmentResponse)
async def save_fragment(
    request: SaveFragmentRequest, pipeline: MindMapPipeline = Depends(get_pipeline)
):
    """Save a captured fragment.

    The fragment is summarized locally (no generation call per fragment).
    When ``page_url`` is present the page's mind map is regenerated and the
    outcome returned under ``generation``.
    """
    print__api_debug(f"📥 SAVE FRAGMENT: {request.source_id} page={request.page_url}")
    fragment, outcome = await pipeline.save_fragment(
        request.message_text,
        request.source_id,
        page_url=request.page_url,
        paragraph_index=request.paragraph_index,
    )
    return SaveFragmentResponse(item=fragment, generation=summarize(outcome))


@router.get("/fragments", response_model=FragmentListResponse)
async def list_fragments(
    page_url: Optional[str] = Query(
        default=None, description="Only fragments captured on this page"
    ),
    pipeline: MindMapPipeline = Depends(get_pipeline),
):
    items = await pipeline.list_fragments(page_url)
    return FragmentListResponse(items=items, count=len(items))


@router.delete("/fragments/{source_id}", response_model=DeleteFragmentResponse)
async def delete_fragment(source_id: str, pipeline: MindMapPipeline = Depends(get_pipeline)):
    """Delete one fragment. Unknown ids answer 200 with ``removed: false``."""
    print__api_debug(f"🗑️ DELETE FRAGMENT: {source_id}")
    result = await pipeline.delete_fragment(source_id)
    return DeleteFragmentResponse(
        source_id=result.source_id,
        removed=result.found,
        generation=summarize(result.outcome),
    )


@router.delete("/fragments", response_model=ClearAllResponse)
async def clear_all_fragments(pipeline: MindMapPipeline = Depends(get_pipeline)):
    """Delete every fragment together with the groups index and all mind maps."""
    removed = await pipeline.clear_all()
    print__api_debug(f"🧹 CLEAR ALL: {removed} fragments removed")
    return ClearAllResponse(removed=removed)


@router.post("/fragments/remove-matching", response_model=RemoveMatchingResponse)
async def remove_matching_fragments(
    request: RemoveMatchingRequest, pipeline: MindMapPipeline = Depends(get_pipeline)
):
    result = await pipeline.remove_matching(request.pattern)
    return RemoveMatchingResponse(
        removed=result.removed,
        keys=result.keys,
        generations={
            page_key: GenerationSummary.from_outcome(outcome)
            for page_key, outcome in result.outcomes.items()
        },
    )
