"""
API package for the chat mind map service.

This package contains the FastAPI application, its routes, request and
response models, exception handlers and configuration.
"""

__version__ = "1.0.0"

# Don't import anything during package initialization to avoid import errors
# that could prevent the API server from starting.
# Individual modules will import what they need when they need it.

__all__ = []
