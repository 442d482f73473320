"""
MODULE_DESCRIPTION: API Configuration Settings - Global State and Application Constants

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Central configuration for the chat mind map service. Values come from the
environment (a local .env file is loaded first) and are read once at import.

The module manages:
    - Application startup tracking (uptime for /health)
    - Key-value store backend selection and its in-memory fallback
    - Concurrency control for generation runs
    - Generation service defaults (model, API base, request timeout)

===================================================================================
ENVIRONMENT VARIABLES
===================================================================================

GOOGLE_API_KEY
    Credential for the Gemini API. The ``geminiApiKey`` store entry, set
    through PUT /settings/api-key, takes precedence.

GEMINI_MODEL (default: models/gemini-1.5-flash)
    Model used by the first generation attempt. Overridden by the
    ``geminiModel`` store entry.

GEMINI_API_BASE (default: https://generativelanguage.googleapis.com/v1beta)

GEMINI_REQUEST_TIMEOUT (default: unset)
    Seconds before an outbound call is abandoned. Unset means no timeout.

MINDMAP_STORE_BACKEND (default: sqlite)
    ``sqlite`` or ``memory``.

MINDMAP_STORE_PATH (default: <project root>/mindmap_store.sqlite3)

INMEMORY_FALLBACK_ENABLED (default: 1)
    Use the in-memory store when the SQLite store cannot be opened.

MAX_CONCURRENT_GENERATIONS (default: 3)
    Generation runs allowed at the same time across all pages.

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

import asyncio

# Standard imports
import time

# ============================================================
# CONFIGURATION AND CONSTANTS
# ============================================================

# Application startup time for uptime tracking
start_time = time.time()

# Generation service defaults
DEFAULT_GEMINI_MODEL = "models/gemini-1.5-flash"
DEFAULT_GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


def _optional_float(raw):
    if raw is None or not raw.strip():
        return None
    return float(raw)


GEMINI_REQUEST_TIMEOUT = _optional_float(os.environ.get("GEMINI_REQUEST_TIMEOUT"))

# Key-value store
MINDMAP_STORE_BACKEND = os.environ.get("MINDMAP_STORE_BACKEND", "sqlite").strip().lower()
MINDMAP_STORE_PATH = os.environ.get(
    "MINDMAP_STORE_PATH", str(BASE_DIR / "mindmap_store.sqlite3")
)

# Read in-memory store fallback configuration from environment
INMEMORY_FALLBACK_ENABLED = os.environ.get("INMEMORY_FALLBACK_ENABLED", "1") == "1"


# Add a semaphore to limit concurrent generation runs
MAX_CONCURRENT_GENERATIONS = int(
    os.environ.get("MAX_CONCURRENT_GENERATIONS", "3")
)  # Read from .env with fallback to 3
generation_semaphore = asyncio.Semaphore(MAX_CONCURRENT_GENERATIONS)
