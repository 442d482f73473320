"""
MODULE_DESCRIPTION: Health Check Endpoint - Service and Store Status

    GET /health   uptime, process memory, key-value store status

Answers 503 with ``status: degraded`` when the store cannot be read, so a
load balancer or the capture client can back off.
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

import time
from datetime import datetime

import psutil
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.config.settings import MAX_CONCURRENT_GENERATIONS, start_time
from api.dependencies.store import get_notifier, get_store
from api.helpers import traceback_json_response
from storage.kv_store import KeyValueStore
from storage.notifier import MindMapNotifier

router = APIRouter()


@router.get("/health")
async def health_check(
    store: KeyValueStore = Depends(get_store),
    notifier: MindMapNotifier = Depends(get_notifier),
):
    """Health check with memory usage and a store round-trip."""
    try:
        process = psutil.Process()
        memory_info = process.memory_info()

        store_healthy = True
        store_error = None
        try:
            await store.get([])
        except Exception as e:
            store_healthy = False
            store_error = str(e)

        health_data = {
            "status": "healthy" if store_healthy else "degraded",
            "timestamp": datetime.now().isoformat(),
            "uptime_seconds": time.time() - start_time,
            "memory": {
                "rss_mb": round(memory_info.rss / 1024 / 1024, 2),
                "percent": round(process.memory_percent(), 2),
            },
            "store": {
                "healthy": store_healthy,
                "store_type": type(store).__name__,
                "error": store_error,
            },
            "generation": {
                "max_concurrent": MAX_CONCURRENT_GENERATIONS,
                "event_subscribers": notifier.subscriber_count(),
            },
            "version": "1.0.0",
        }

        if not store_healthy:
            return JSONResponse(status_code=503, content=health_data)
        return health_data

    except Exception as e:
        resp = traceback_json_response(e)
        if resp:
            return resp
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error": str(e),
                "timestamp": datetime.now().isoformat(),
            },
        )
