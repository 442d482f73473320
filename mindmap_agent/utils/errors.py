"""Typed errors raised inside the mind map pipeline.

Every class here derives from ``MindMapError`` so API handlers and the
orchestrator boundary can catch the whole family at once. Errors that can end
a generation run derive from ``GenerationError`` and are converted into a
returned ``GenerationOutcome`` by ``GenerationOrchestrator.generate``; they
never escape to the host process.
"""

from typing import List, Optional

# ==============================================================================
# CONSTANTS
# ==============================================================================
# Characters of raw model output kept on errors for diagnostics
PREVIEW_CHARS = 800

# Characters of an HTTP error body kept on GenerationApiError
BODY_EXCERPT_CHARS = 500


def make_preview(text, limit: int = PREVIEW_CHARS) -> str:
    """Collapse whitespace and cut ``text`` to ``limit`` characters."""
    if text is None:
        return ""
    return " ".join(str(text).split())[:limit]


# ==============================================================================
# BASE CLASSES
# ==============================================================================
class MindMapError(Exception):
    """Root of every error raised by the mind map service."""

    error_type = "mind_map_error"

    def to_dict(self) -> dict:
        return {"error_type": self.error_type, "message": str(self)}


class InvalidUrlError(MindMapError, ValueError):
    """A page URL could not be parsed into a page key."""

    error_type = "invalid_url"

    def __init__(self, url, reason: str = "malformed URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"Cannot derive page key from {url!r}: {reason}")


class GenerationError(MindMapError):
    """A generation run ended without a valid mind map."""

    error_type = "generation_error"


# ==============================================================================
# SERVICE ERRORS
# ==============================================================================
class GenerationApiError(GenerationError):
    """The generation service answered with a non-success status.

    ``status`` is None when the request never got an HTTP answer
    (connection refused, DNS failure, read timeout).
    """

    error_type = "api_error"

    def __init__(self, status: Optional[int], body: str = "", model: str = ""):
        self.status = status
        self.body = (body or "")[:BODY_EXCERPT_CHARS]
        self.model = model
        label = status if status is not None else "transport"
        super().__init__(f"Gemini API error: {label} {self.body}".strip())

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"status": self.status, "body": self.body, "model": self.model})
        return data


class ModelNotFoundError(GenerationApiError):
    """The model identifier is unknown and no fallback model is available."""

    error_type = "model_not_found"

    def __init__(self, model: str, available_models: List[str], body: str = ""):
        self.available_models = list(available_models)
        super().__init__(404, body, model=model)
        available = ", ".join(self.available_models) or "(none)"
        self.args = (
            f"Model {model} not available and no alternative found. "
            f"Available models: {available}",
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["available_models"] = self.available_models
        return data


# ==============================================================================
# RESPONSE ERRORS
# ==============================================================================
class EmptyResponseError(GenerationError):
    """The service answered but no text-like content could be found."""

    error_type = "empty_response"

    def __init__(self, model: str = ""):
        self.model = model
        super().__init__("Gemini response contains no text")


class OpaqueResponseError(GenerationError):
    """The decoded text looked like an identifier instead of prose or JSON."""

    error_type = "opaque_response"

    def __init__(self, preview: str = "", models_tried: Optional[List[str]] = None):
        self.preview = make_preview(preview, 120)
        self.models_tried = list(models_tried or [])
        super().__init__(
            "Gemini response looks like an opaque identifier instead of JSON "
            f"(models tried: {', '.join(self.models_tried) or '-'})"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"preview": self.preview, "models_tried": self.models_tried})
        return data


class UnparsableTextError(GenerationError):
    """Harvested text could not be turned into structured data."""

    error_type = "unparsable_text"

    def __init__(self, message: str, preview: str = ""):
        self.preview = make_preview(preview)
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["preview"] = self.preview
        return data


class NoStructuredDataError(UnparsableTextError):
    """Every clean-up strategy of the text parser failed."""

    error_type = "no_structured_data"

    def __init__(self, raw: str = "", reason: str = "Could not parse JSON in response"):
        preview = make_preview(raw)
        super().__init__(f"{reason}. Preview: {preview}", preview=preview)


class SchemaViolationError(GenerationError):
    """Parsed JSON did not satisfy either mind map schema."""

    error_type = "schema_violation"

    def __init__(self, value=None):
        self.preview = make_preview(value)
        super().__init__("Response does not match the expected mind map schema")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["preview"] = self.preview
        return data
