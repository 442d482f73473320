"""
Data models package for the API server.

This package contains Pydantic models for request/response validation
of the chat mind map service.
"""

# Import request models
from .requests import (
    ApiKeyRequest,
    GenerateRequest,
    ModelRequest,
    RemoveMatchingRequest,
    SaveFragmentRequest,
)

# Import response models
from .responses import (
    ApiKeyStatusResponse,
    ClearAllResponse,
    DeleteFragmentResponse,
    FragmentListResponse,
    FragmentResponse,
    GenerateResponse,
    GenerationSummary,
    GroupResponse,
    GroupsIndexResponse,
    MindMapResponse,
    ModelResponse,
    RemoveMatchingResponse,
    SaveFragmentResponse,
)

# Export all models for easier access
__all__ = [
    # Request models
    "ApiKeyRequest",
    "GenerateRequest",
    "ModelRequest",
    "RemoveMatchingRequest",
    "SaveFragmentRequest",
    # Response models
    "ApiKeyStatusResponse",
    "ClearAllResponse",
    "DeleteFragmentResponse",
    "FragmentListResponse",
    "FragmentResponse",
    "GenerateResponse",
    "GenerationSummary",
    "GroupResponse",
    "GroupsIndexResponse",
    "MindMapResponse",
    "ModelResponse",
    "RemoveMatchingResponse",
    "SaveFragmentResponse",
]
