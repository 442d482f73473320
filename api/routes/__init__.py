"""
Routes package for the API server.

This package contains FastAPI route handlers for fragments, mind maps,
groups, settings and health checks of the chat mind map service.
"""

# CRITICAL: Set Windows event loop policy FIRST, before any other imports
import sys
import os

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Load environment variables early
from dotenv import load_dotenv

load_dotenv()

# Routes module initialization
from .fragments import router as fragments_router
from .groups import router as groups_router
from .health import router as health_router
from .mindmaps import router as mindmaps_router
from .root import router as root_router
from .settings import router as settings_router

# Export all routers for easy import
__all__ = [
    "fragments_router",
    "groups_router",
    "health_router",
    "mindmaps_router",
    "root_router",
    "settings_router",
]
