"""
MODULE_DESCRIPTION: API Helper Functions - Debug Error Responses

``traceback_json_response`` builds a 500-style JSON body with the formatted
traceback when DEBUG_TRACEBACK=1, and returns None otherwise so the caller
falls back to a response that does not expose internals.

    try:
        ...
    except Exception as e:
        resp = traceback_json_response(e)
        if resp:
            return resp
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
"""

# API helper functions for error handling and response formatting
import os
import traceback

from fastapi.responses import JSONResponse


# ==============================================================================
# ERROR RESPONSE HELPERS
# ==============================================================================


def traceback_json_response(e, status_code=500, page_key=None):
    """Return a JSONResponse carrying the traceback in debug mode, else None.

    Args:
        e: The exception that occurred
        status_code: HTTP status code for the response (default: 500)
        page_key: Optional page key included for error correlation
    """
    if os.getenv("DEBUG_TRACEBACK", "0") != "1":
        return None

    content = {
        "detail": str(e),
        "traceback": "".join(traceback.format_exception(type(e), e, e.__traceback__)),
    }
    if page_key:
        content["page_key"] = page_key
    return JSONResponse(status_code=status_code, content=content)
