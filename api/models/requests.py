"""
MODULE_DESCRIPTION: Request Models - Validated Input Schemas for the Mind Map API

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Pydantic models for every request body the API accepts. FastAPI validates
incoming JSON against them and answers 422 before a handler runs.

Models:
    - SaveFragmentRequest: a chat snippet captured on a page
    - RemoveMatchingRequest: substring used to purge stored fragments
    - GenerateRequest: page whose mind map is regenerated on demand
    - ApiKeyRequest / ModelRequest: settings overrides kept in the store

String fields are stripped by their validators; blank required strings are
rejected with a readable message.

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

from pydantic import BaseModel, Field, field_validator


# ============================================================
# REQUEST MODELS
# ============================================================
class SaveFragmentRequest(BaseModel):
    """Request model for saving a captured chat fragment."""

    message_text: str = Field(
        description="Full text of the captured chat message",
        min_length=1,
        examples=["Los modelos de lenguaje se entrenan con grandes corpus de texto."],
    )
    source_id: str = Field(
        description="Client-chosen unique id; saving the same id again replaces the fragment",
        min_length=1,
        max_length=200,
        examples=["msg_1700000000000"],
    )
    page_url: Optional[str] = Field(
        default=None,
        description="URL of the chat page the text was captured on",
        examples=["https://chat.example.com/c/abc123"],
    )
    paragraph_index: Optional[int] = Field(
        default=None,
        ge=0,
        description="Position of the captured paragraph inside the message",
        examples=[0],
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "message_text": "Los modelos de lenguaje se entrenan con grandes corpus de texto.",
                    "source_id": "msg_1700000000000",
                    "page_url": "https://chat.example.com/c/abc123",
                    "paragraph_index": 0,
                }
            ]
        }
    }

    @field_validator("message_text")
    @classmethod
    def validate_message_text(cls, v):
        if not v or not v.strip():
            raise ValueError("Message text cannot be empty or only whitespace")
        return v

    @field_validator("source_id")
    @classmethod
    def validate_source_id(cls, v):
        if not v or not v.strip():
            raise ValueError("Source ID cannot be empty or only whitespace")
        return v.strip()

    @field_validator("page_url")
    @classmethod
    def validate_page_url(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None


class RemoveMatchingRequest(BaseModel):
    """Request model for removing every fragment that contains a phrase."""

    pattern: str = Field(
        description="Case-insensitive substring matched against title and text; blank removes nothing",
        max_length=1000,
        examples=["lorem ipsum"],
    )

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v):
        return v.strip()


class GenerateRequest(BaseModel):
    """Request model for regenerating the mind map of one page."""

    page_url: str = Field(
        description="URL of the page whose fragments feed the mind map",
        min_length=1,
        examples=["https://chat.example.com/c/abc123"],
    )

    @field_validator("page_url")
    @classmethod
    def validate_page_url(cls, v):
        if not v or not v.strip():
            raise ValueError("Page URL cannot be empty or only whitespace")
        return v.strip()


class ApiKeyRequest(BaseModel):
    """Request model for storing the generation service credential."""

    api_key: str = Field(
        description="Gemini API key; stored values take precedence over GOOGLE_API_KEY",
        min_length=1,
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v):
        if not v or not v.strip():
            raise ValueError("API key cannot be empty or only whitespace")
        return v.strip()


class ModelRequest(BaseModel):
    """Request model for choosing the generation model."""

    model: str = Field(
        description="Model identifier as listed by the service",
        min_length=1,
        examples=["models/gemini-1.5-flash"],
    )

    @field_validator("model")
    @classmethod
    def validate_model(cls, v):
        if not v or not v.strip():
            raise ValueError("Model cannot be empty or only whitespace")
        v = v.strip()
        # Bare names are accepted and stored in the service's "models/" form
        return v if v.startswith("models/") else f"models/{v}"
