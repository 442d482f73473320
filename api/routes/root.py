"""
MODULE_DESCRIPTION: Root Endpoint - API Discovery

    GET /   service name, version and a catalog of the available endpoints
"""

from datetime import datetime

from fastapi import APIRouter

# ==============================================================================
# FASTAPI ROUTER INITIALIZATION
# ==============================================================================
router = APIRouter()


@router.get("/")
async def api_root():
    """Entry point listing every endpoint group with a one-line purpose."""
    return {
        "name": "Chat Mind Map API",
        "version": "1.0.0",
        "description": "Captures chat fragments and builds a mind map per page",
        "status": "operational",
        "timestamp": datetime.now().isoformat(),
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_schema": "/openapi.json",
        },
        "fragment_endpoints": {
            "POST /fragments": "Save a captured fragment and regenerate its page map",
            "GET /fragments": "List stored fragments, optionally for one page",
            "DELETE /fragments/{source_id}": "Delete one fragment",
            "DELETE /fragments": "Delete every fragment, group and map",
            "POST /fragments/remove-matching": "Delete fragments containing a phrase",
        },
        "mind_map_endpoints": {
            "POST /mindmaps/generate": "Regenerate the mind map of a page",
            "GET /mindmaps": "Stored mind map of a page",
            "GET /mindmaps/events": "Server-sent MIND_MAP_UPDATED events for a page",
            "GET /groups": "Keyword groups of all fragments",
        },
        "system_endpoints": {
            "GET /health": "Service and store status",
            "GET|PUT|DELETE /settings/api-key": "Generation credential",
            "GET|PUT /settings/model": "Generation model",
        },
    }
