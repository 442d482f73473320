"""
Dependencies package for the API server.

This package contains FastAPI dependencies that inject the shared store,
notifier and pipeline into route handlers.
"""

from .store import get_notifier, get_pipeline, get_store

# Export all dependencies for easier access
__all__ = ["get_notifier", "get_pipeline", "get_store"]
