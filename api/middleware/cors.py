"""
MODULE_DESCRIPTION: CORS Middleware Setup

The capture client runs inside chat pages on other origins, so the API must
answer cross-origin requests. Allowed origins come from CORS_ALLOWED_ORIGINS
(comma-separated); the default covers local development.

    CORS_ALLOWED_ORIGINS=https://chat.example.com,chrome-extension://abcdef
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

# Standard imports
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.utils.debug import print__startup_debug

# ==============================================================================
# MIDDLEWARE SETUP - CORS
# ==============================================================================


def setup_cors_middleware(app: FastAPI):
    """Let the capture client and the mind map viewer call the API cross-origin.

    Args:
        app: The FastAPI application instance

    Configuration:
        - allow_origins: From CORS_ALLOWED_ORIGINS env var
        - allow_methods: GET, POST, PUT, DELETE, OPTIONS
        - allow_headers: ["*"]
    """
    print__startup_debug("📋 Registering CORS middleware...")

    allowed_origins_str = os.getenv(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://localhost:8000",  # Default for development
    )
    allowed_origins = [
        origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()
    ]
    print__startup_debug(f"📋 CORS allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
