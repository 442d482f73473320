"""
Configuration package for the API server.

This package contains settings, constants, and configuration management
for the chat mind map service.
"""

from .settings import (
    BASE_DIR,
    DEFAULT_GEMINI_API_BASE,
    DEFAULT_GEMINI_MODEL,
    GEMINI_REQUEST_TIMEOUT,
    INMEMORY_FALLBACK_ENABLED,
    MAX_CONCURRENT_GENERATIONS,
    MINDMAP_STORE_BACKEND,
    MINDMAP_STORE_PATH,
    generation_semaphore,
    start_time,
)
