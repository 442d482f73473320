"""
MODULE_DESCRIPTION: Groups Endpoint - Keyword-Clustered Fragment Index

    GET /groups   the groups index rebuilt after every fragment mutation

Groups are keyed by a fragment's first keyword; fragments without keywords
land in the ``otros`` group.
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

from fastapi import APIRouter, Depends

from api.dependencies.store import get_pipeline
from api.models.responses import GroupsIndexResponse
from mindmap_agent.pipeline import MindMapPipeline

router = APIRouter()


@router.get("/groups", response_model=GroupsIndexResponse)
async def get_groups(pipeline: MindMapPipeline = Depends(get_pipeline)):
    groups = await pipeline.get_groups_index()
    return GroupsIndexResponse(groups=groups, count=len(groups))
