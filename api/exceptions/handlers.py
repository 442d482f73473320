"""
MODULE_DESCRIPTION: Global Exception Handlers - Consistent Error Responses

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Exception handlers registered on the FastAPI application so every endpoint
answers errors with the same JSON shape:

    RequestValidationError  -> 422 {"detail": "Validation error", "errors": [...]}
    HTTPException           -> exc.status_code {"detail": exc.detail}
    ValueError              -> 400 {"detail": str(exc)}
    MindMapError            -> 400 when it is also a ValueError (bad page URL),
                               otherwise 502, body from ``exc.to_dict()``
    Exception               -> 500 {"detail": "Internal server error"}

Generation failures inside the regular flows never reach these handlers: the
pipeline reports them in-band as ``ok: false``. ``mind_map_error_handler``
covers the code paths that call the generation layer directly.

===================================================================================
DEBUGGING
===================================================================================

DEBUG_TRACEBACK=1 adds the formatted traceback to 500 responses. Leave it off
outside development.

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

# Standard imports
import traceback

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.utils.debug import print__api_debug, print__debug
from mindmap_agent.utils.errors import MindMapError

# ==============================================================================
# EXCEPTION HANDLERS
# ==============================================================================


async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with a 422 status code.

    Uses jsonable_encoder because error contexts can carry exception objects
    that plain json.dumps rejects. Falls back to a minimal structure if the
    encoding still fails.
    """
    print__debug(f"Validation error: {exc.errors()}")
    try:
        payload = {"detail": "Validation error", "errors": exc.errors()}
        return JSONResponse(status_code=422, content=jsonable_encoder(payload))
    except Exception as encoding_error:  # pylint: disable=broad-except
        print__debug(
            f"🚨 Validation encoding failure: {type(encoding_error).__name__}: {encoding_error}"
        )
        simple_errors = [
            {"msg": e.get("msg"), "loc": e.get("loc"), "type": e.get("type")}
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Validation error",
                "errors": simple_errors,
                "note": "Simplified due to serialization issue",
            },
        )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Return HTTP exceptions as ``{"detail": ...}`` and log 4xx/5xx context."""
    if exc.status_code >= 400:
        print__api_debug(f"🚨 HTTP {exc.status_code} ERROR: {exc.detail}")
        print__api_debug(
            f"🚨 HTTP {exc.status_code} TRACE: {request.method} {request.url}"
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def value_error_handler(_request: Request, exc: ValueError):
    """Handle ValueError exceptions as 400 Bad Request.

    ValueErrors signal input that passed Pydantic validation but was rejected
    by the pipeline (blank source ids, reserved store keys, unknown backends).
    """
    print__debug(f"ValueError: {str(exc)}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def mind_map_error_handler(_request: Request, exc: MindMapError):
    """Map generation-layer errors onto 400 or 502 with their ``error_type``."""
    status_code = 400 if isinstance(exc, ValueError) else 502
    print__api_debug(f"❌ {exc.error_type} ({status_code}): {exc}")
    content = {"detail": str(exc)}
    content.update(exc.to_dict())
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


async def general_exception_handler(_request: Request, exc: Exception):
    """Handle unexpected exceptions (500 Internal Server Error).

    Behavior:
    - DEBUG_TRACEBACK=1: include the full traceback in the response
    - otherwise: generic message, details only in the debug log
    """
    if os.getenv("DEBUG_TRACEBACK", "0") == "1":
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        print__debug(
            f"Unexpected error (with traceback): {type(exc).__name__}: {str(exc)}\n{tb}"
        )
        return JSONResponse(
            status_code=500, content={"detail": str(exc), "traceback": tb}
        )
    print__debug(f"Unexpected error: {type(exc).__name__}: {str(exc)}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
