"""
MODULE_DESCRIPTION: Response Models - Output Schemas for the Mind Map API

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Pydantic models describing every JSON body the API returns. They drive the
OpenAPI documentation and keep the wire format stable.

Generation results are reported in-band: a request that saved a fragment
still answers 200 when the mind map could not be regenerated, with the
outcome in a ``generation`` object (``ok``, ``status``, ``error``,
``error_type``). Clients decide whether to surface the failure.

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

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from mindmap_agent.utils.state import GenerationOutcome

# Message shown when generation had nothing to work with
NOT_ENOUGH_DATA_MESSAGE = "No hay datos suficientes o falta la clave de API."


# ============================================================
# GENERATION OUTCOME
# ============================================================
class GenerationSummary(BaseModel):
    """Serializable view of one generation run."""

    ok: bool = Field(description="True when a valid mind map was produced and stored")
    status: str = Field(description="ok, skipped or error", examples=["ok"])
    reason: Optional[str] = Field(
        default=None,
        description="Why generation was skipped",
        examples=["no_credential"],
    )
    error: Optional[str] = Field(default=None, description="Human-readable failure message")
    error_type: Optional[str] = Field(
        default=None,
        description="Machine-readable failure category",
        examples=["opaque_response"],
    )
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Structured error data (previews, models tried)"
    )
    calls_made: int = Field(default=0, description="Generation calls issued")
    models_tried: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: GenerationOutcome) -> "GenerationSummary":
        summary = cls(
            ok=outcome.ok,
            status=outcome.status,
            reason=outcome.reason,
            calls_made=outcome.calls_made,
            models_tried=list(outcome.models_tried),
        )
        if outcome.error is not None:
            summary.error = str(outcome.error)
            summary.error_type = outcome.error.error_type
            summary.details = outcome.error.to_dict()
        elif outcome.status == "skipped":
            summary.error = NOT_ENOUGH_DATA_MESSAGE
            summary.error_type = outcome.reason
        return summary


def summarize(outcome: Optional[GenerationOutcome]) -> Optional[GenerationSummary]:
    return GenerationSummary.from_outcome(outcome) if outcome is not None else None


# ============================================================
# FRAGMENT RESPONSES
# ============================================================
class FragmentResponse(BaseModel):
    """A stored fragment as returned to clients."""

    source_id: str
    title: str
    summary: str
    key_points: List[str] = Field(default_factory=list)
    actions: List[str] = Field(default_factory=list)
    entities: List[str] = Field(default_factory=list)
    original_text: str
    pageUrl: Optional[str] = None
    normalized_page: Optional[str] = None
    paragraphIndex: Optional[int] = None
    created_at: str


class SaveFragmentResponse(BaseModel):
    ok: bool = True
    item: FragmentResponse
    generation: Optional[GenerationSummary] = Field(
        default=None, description="Absent when the fragment has no page URL"
    )


class FragmentListResponse(BaseModel):
    items: List[FragmentResponse]
    count: int


class DeleteFragmentResponse(BaseModel):
    ok: bool = True
    source_id: str
    removed: bool = Field(description="False when no fragment had this id")
    generation: Optional[GenerationSummary] = None


class ClearAllResponse(BaseModel):
    ok: bool = True
    removed: int = Field(description="Number of fragments deleted")


class RemoveMatchingResponse(BaseModel):
    ok: bool = True
    removed: int
    keys: List[str] = Field(description="Ids of the deleted fragments")
    generations: Dict[str, GenerationSummary] = Field(
        default_factory=dict, description="Regeneration outcome per affected page key"
    )


# ============================================================
# MIND MAP RESPONSES
# ============================================================
class GenerateResponse(BaseModel):
    ok: bool
    page_key: Optional[str] = None
    map: Optional[Dict[str, Any]] = Field(default=None, description="The new mind map")
    generation: GenerationSummary
    error: Optional[str] = None


class MindMapResponse(BaseModel):
    page_key: str
    data: Dict[str, Any]
    updated_at: str
    pageUrl: Optional[str] = None


# ============================================================
# GROUPS AND SETTINGS
# ============================================================
class GroupResponse(BaseModel):
    key: str
    title: str
    items: List[str]
    updated_at: str


class GroupsIndexResponse(BaseModel):
    groups: Dict[str, GroupResponse]
    count: int


class ApiKeyStatusResponse(BaseModel):
    """Whether a credential is configured; the key itself is never returned."""

    configured: bool
    source: Optional[str] = Field(
        default=None, description="store, env, or null", examples=["store"]
    )


class ModelResponse(BaseModel):
    model: str = Field(examples=["models/gemini-1.5-flash"])
    source: str = Field(description="store, env or default", examples=["default"])
