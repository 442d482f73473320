"""State definitions for the mind map pipeline.

Stored records (fragments, groups, map entries) are plain JSON dictionaries in
the key-value store, so they are described with ``TypedDict``. Per-run
generation state lives in ``GenerationContext``, created fresh for every
orchestrator invocation and discarded when it returns.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TypedDict

from mindmap_agent.utils.errors import GenerationError


# ==============================================================================
# STORED RECORDS
# ==============================================================================
class Fragment(TypedDict, total=False):
    """A captured snippet of chat text with provenance metadata."""

    source_id: str  # Unique id, also the store key
    title: str
    summary: str
    key_points: List[str]
    actions: List[str]
    entities: List[str]
    original_text: str
    pageUrl: Optional[str]
    normalized_page: Optional[str]  # Page key derived once at creation
    paragraphIndex: Optional[int]
    created_at: str  # ISO 8601


class Group(TypedDict):
    """Keyword-clustered bucket of fragment ids."""

    key: str
    title: str
    items: List[str]  # Fragment ids in insertion order
    updated_at: str


class MindMapEntry(TypedDict):
    """Stored mind map for one page key."""

    data: Dict[str, Any]
    updated_at: str
    pageUrl: Optional[str]


# ==============================================================================
# GENERATION STATE
# ==============================================================================
@dataclass(frozen=True)
class GenerationAttempt:
    """One external call made during a generation run."""

    index: int  # Outer iteration (0 or 1)
    model: str
    strategy: str  # "baseline", "strict", "fallback" or "forced"
    forced_example_used: bool = False
    status: Optional[int] = None
    outcome: str = ""


@dataclass
class GenerationContext:
    """Mutable bookkeeping scoped to a single orchestrator invocation.

    Never shared between invocations: concurrent runs each own a context.
    """

    page_key: str
    available_models: Optional[List[str]] = None  # ListModels cache
    unavailable_models: set = field(default_factory=set)  # Models that answered 404
    forced_retries_used: int = 0
    calls_made: int = 0
    attempts: List[GenerationAttempt] = field(default_factory=list)

    def record(self, attempt: GenerationAttempt) -> None:
        self.calls_made += 1
        self.attempts.append(attempt)

    @property
    def models_tried(self) -> List[str]:
        seen = []
        for attempt in self.attempts:
            if attempt.model not in seen:
                seen.append(attempt.model)
        return seen


@dataclass
class GenerationOutcome:
    """Result of ``GenerationOrchestrator.generate``.

    ``status`` is ``ok`` with ``mind_map`` set, ``skipped`` with ``reason``
    set (nothing to generate), or ``error`` with ``error`` set.
    """

    status: str
    mind_map: Optional[Dict[str, Any]] = None
    error: Optional[GenerationError] = None
    reason: Optional[str] = None
    calls_made: int = 0
    models_tried: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def skipped(cls, reason: str) -> "GenerationOutcome":
        return cls(status="skipped", reason=reason)

    @classmethod
    def succeeded(cls, mind_map, context: GenerationContext) -> "GenerationOutcome":
        return cls(
            status="ok",
            mind_map=mind_map,
            calls_made=context.calls_made,
            models_tried=context.models_tried,
        )

    @classmethod
    def failed(cls, error: GenerationError, context: GenerationContext) -> "GenerationOutcome":
        return cls(
            status="error",
            error=error,
            calls_made=context.calls_made,
            models_tried=context.models_tried,
        )
