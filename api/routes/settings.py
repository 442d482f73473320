"""
MODULE_DESCRIPTION: Settings Endpoints - Generation Credential and Model

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

    GET    /settings/api-key   whether a credential is configured, and where
    PUT    /settings/api-key   store a credential (overrides GOOGLE_API_KEY)
    DELETE /settings/api-key   forget the stored credential
    GET    /settings/model     model used by the next generation run
    PUT    /settings/model     store a model (overrides GEMINI_MODEL)

Stored values are read on every generation run, so changes apply without a
restart. The credential is never echoed back.

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

from fastapi import APIRouter, Depends

from api.config.settings import DEFAULT_GEMINI_MODEL
from api.dependencies.store import get_pipeline
from api.models.requests import ApiKeyRequest, ModelRequest
from api.models.responses import ApiKeyStatusResponse, ModelResponse
from api.utils.debug import print__api_debug
from mindmap_agent.pipeline import MindMapPipeline

router = APIRouter()


async def _api_key_status(pipeline: MindMapPipeline) -> ApiKeyStatusResponse:
    if await pipeline.settings.get_api_key():
        return ApiKeyStatusResponse(configured=True, source="store")
    if os.environ.get("GOOGLE_API_KEY", "").strip():
        return ApiKeyStatusResponse(configured=True, source="env")
    return ApiKeyStatusResponse(configured=False)


async def _model_status(pipeline: MindMapPipeline) -> ModelResponse:
    stored = await pipeline.settings.get_model()
    if stored:
        return ModelResponse(model=stored, source="store")
    env_model = os.environ.get("GEMINI_MODEL", "").strip()
    if env_model:
        return ModelResponse(model=env_model, source="env")
    return ModelResponse(model=DEFAULT_GEMINI_MODEL, source="default")


@router.get("/settings/api-key", response_model=ApiKeyStatusResponse)
async def get_api_key_status(pipeline: MindMapPipeline = Depends(get_pipeline)):
    return await _api_key_status(pipeline)


@router.put("/settings/api-key", response_model=ApiKeyStatusResponse)
async def set_api_key(request: ApiKeyRequest, pipeline: MindMapPipeline = Depends(get_pipeline)):
    await pipeline.settings.set_api_key(request.api_key)
    print__api_debug("🔑 SETTINGS: API key stored")
    return await _api_key_status(pipeline)


@router.delete("/settings/api-key", response_model=ApiKeyStatusResponse)
async def clear_api_key(pipeline: MindMapPipeline = Depends(get_pipeline)):
    await pipeline.settings.clear_api_key()
    print__api_debug("🔑 SETTINGS: stored API key cleared")
    return await _api_key_status(pipeline)


@router.get("/settings/model", response_model=ModelResponse)
async def get_model(pipeline: MindMapPipeline = Depends(get_pipeline)):
    return await _model_status(pipeline)


@router.put("/settings/model", response_model=ModelResponse)
async def set_model(request: ModelRequest, pipeline: MindMapPipeline = Depends(get_pipeline)):
    await pipeline.settings.set_model(request.model)
    print__api_debug(f"⚙️ SETTINGS: model set to {request.model}")
    return await _model_status(pipeline)
