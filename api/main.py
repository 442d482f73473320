"""Chat Mind Map FastAPI Backend Application

Main entry point of the service that turns chat fragments captured on web
pages into one mind map per page. It wires the key-value store lifecycle,
CORS, exception handlers and the route routers together.

Startup opens the configured store (SQLite by default, in-memory fallback
when enabled) and shutdown closes it. Everything else is created lazily on
first use.
"""

import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# ==============================================================================
# ENVIRONMENT VARIABLES LOADING
# ==============================================================================
# Load .env file early to ensure all configuration is available before imports
from dotenv import load_dotenv

load_dotenv()

# ==============================================================================
# PROJECT ROOT DIRECTORY CONFIGURATION
# ==============================================================================
try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[1]  # Go up one level from api/main.py
except NameError:
    # Fallback for interactive environments (Jupyter, REPL)
    BASE_DIR = Path(os.getcwd())

# Add the root directory to Python path for imports to work
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

# ==============================================================================
# STANDARD LIBRARY AND THIRD-PARTY IMPORTS
# ==============================================================================
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.exceptions.handlers import (
    general_exception_handler,
    http_exception_handler,
    mind_map_error_handler,
    validation_exception_handler,
    value_error_handler,
)
from api.middleware.cors import setup_cors_middleware
from api.routes.fragments import router as fragments_router
from api.routes.groups import router as groups_router
from api.routes.health import router as health_router
from api.routes.mindmaps import router as mindmaps_router
from api.routes.root import router as root_router
from api.routes.settings import router as settings_router
from api.utils.debug import print__startup_debug
from mindmap_agent.utils.errors import MindMapError
from storage.factory import cleanup_store, initialize_store

_APP_STARTUP_TIME = None


# ==============================================================================
# APPLICATION LIFESPAN MANAGEMENT
# ==============================================================================
@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Open the key-value store on startup and close it on shutdown."""
    # pylint: disable=global-statement
    global _APP_STARTUP_TIME
    _APP_STARTUP_TIME = datetime.now()

    print__startup_debug("🚀 FastAPI application starting up...")
    await initialize_store()
    print__startup_debug("✅ FastAPI application ready to serve requests")

    yield  # Application runs here, serving requests

    print__startup_debug("🛑 FastAPI application shutting down...")
    print__startup_debug(f"Application ran for {datetime.now() - _APP_STARTUP_TIME}")
    await cleanup_store()


# ==============================================================================
# FASTAPI APPLICATION INITIALIZATION
# ==============================================================================
app = FastAPI(
    title="Chat Mind Map API",
    description="""Captures fragments of AI chat conversations and keeps one mind map per page.

## Features
- 📥 Fragment capture with local summaries
- 🗂️ Keyword groups across all fragments
- 🧠 Mind map generation with model fallback and forced-example retries
- 📡 Server-sent events when a page's map changes
    """,
    version="1.0.0",
    lifespan=lifespan,
    servers=[
        {"url": "http://localhost:8000", "description": "Development server"},
    ],
    responses={
        422: {
            "description": "Validation Error - Invalid request parameters",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Validation error",
                        "errors": [
                            {
                                "loc": ["body", "source_id"],
                                "msg": "Field required",
                                "type": "missing",
                            }
                        ],
                    }
                }
            },
        },
        500: {
            "description": "Internal Server Error",
            "content": {
                "application/json": {"example": {"detail": "Internal server error"}}
            },
        },
    },
)

# ==============================================================================
# MIDDLEWARE REGISTRATION
# ==============================================================================
setup_cors_middleware(app)

# ==============================================================================
# EXCEPTION HANDLERS
# ==============================================================================
# InvalidUrlError resolves to mind_map_error_handler (MindMapError precedes ValueError in its MRO)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(MindMapError, mind_map_error_handler)
app.add_exception_handler(ValueError, value_error_handler)
app.add_exception_handler(Exception, general_exception_handler)

# ==============================================================================
# ROUTE REGISTRATION
# ==============================================================================
print__startup_debug("[ROUTES] Registering route routers...")

app.include_router(root_router, tags=["Root"])  # GET /
app.include_router(health_router, tags=["Health & Monitoring"])  # GET /health
app.include_router(fragments_router, tags=["Fragments"])  # /fragments/*
app.include_router(mindmaps_router, tags=["Mind Maps"])  # /mindmaps/*
app.include_router(groups_router, tags=["Groups"])  # GET /groups
app.include_router(settings_router, tags=["Settings"])  # /settings/*

print__startup_debug("[SUCCESS] All route routers registered successfully")
