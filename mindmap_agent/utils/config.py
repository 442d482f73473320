"""Generation settings resolved per run.

Environment variables give the defaults; the key-value store (written by the
settings endpoints) overrides the credential and the model.
"""

import os
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from api.config.settings import (
    DEFAULT_GEMINI_API_BASE,
    DEFAULT_GEMINI_MODEL,
    GEMINI_REQUEST_TIMEOUT,
)
from api.utils.debug import print__generation_debug

# ==============================================================================
# CONSTANTS
# ==============================================================================
MODEL_FALLBACK_PREFERENCE: Tuple[str, ...] = (
    "models/gemini-1.5-flash",
    "models/gemini-2.5-flash",
    "models/text-bison-001",
    "models/text-bison-002",
)

# Used on the second outer iteration when the configured model is a flash variant
ALTERNATE_MODEL = "models/gemini-1.5-pro"


def _clean(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class GenerationConfig(BaseModel):
    """Everything one orchestrator run needs to talk to the service."""

    api_key: Optional[str] = Field(
        default=None, description="Gemini API key; None skips generation"
    )
    model: str = Field(
        default=DEFAULT_GEMINI_MODEL,
        description="Model used by the first attempt",
        examples=["models/gemini-1.5-flash"],
    )
    api_base: str = Field(default=DEFAULT_GEMINI_API_BASE)
    timeout: Optional[float] = Field(
        default=None, description="Seconds per request; None means no timeout"
    )
    fallback_preference: Tuple[str, ...] = MODEL_FALLBACK_PREFERENCE
    alternate_model: str = ALTERNATE_MODEL

    temperature: float = 0.0
    top_p: float = 0.8
    top_k: int = 40
    max_output_tokens: int = 2048
    response_mime_type: str = "application/json"

    outer_iterations: int = Field(default=2, ge=1)
    max_forced_retries: int = Field(default=2, ge=0)

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v):
        return _clean(v)

    @field_validator("model")
    @classmethod
    def validate_model(cls, v):
        return _clean(v) or DEFAULT_GEMINI_MODEL

    @property
    def has_credential(self) -> bool:
        return self.api_key is not None

    def generation_settings(self, temperature: Optional[float] = None) -> Dict[str, Any]:
        """``generationConfig`` block of the request body."""
        return {
            "temperature": self.temperature if temperature is None else temperature,
            "topP": self.top_p,
            "topK": self.top_k,
            "maxOutputTokens": self.max_output_tokens,
            "responseMimeType": self.response_mime_type,
        }


async def load_generation_config(settings_store=None) -> GenerationConfig:
    """Merge stored overrides on top of environment defaults.

    Args:
        settings_store: Object with async ``get_api_key()`` and ``get_model()``
            (``storage.repositories.SettingsStore``), or None for env only.
    """
    api_key = _clean(os.environ.get("GOOGLE_API_KEY"))
    model = _clean(os.environ.get("GEMINI_MODEL")) or DEFAULT_GEMINI_MODEL
    api_base = _clean(os.environ.get("GEMINI_API_BASE")) or DEFAULT_GEMINI_API_BASE

    if settings_store is not None:
        api_key = _clean(await settings_store.get_api_key()) or api_key
        model = _clean(await settings_store.get_model()) or model

    print__generation_debug(
        f"⚙️ CONFIG: model={model} credential={'set' if api_key else 'missing'}"
    )
    return GenerationConfig(
        api_key=api_key,
        model=model,
        api_base=api_base,
        timeout=GEMINI_REQUEST_TIMEOUT,
    )
