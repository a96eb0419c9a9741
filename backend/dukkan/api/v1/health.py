"""
Health check endpoint
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dukkan import __version__
from dukkan.api.deps import get_store
from dukkan.core.config import settings
from dukkan.core.exceptions import StoreError
from dukkan.database.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(store: KeyValueStore = Depends(get_store)):
    """Service status with key-value store reachability; 503 when the store is down"""
    try:
        store_ok = await store.ping()
    except StoreError as e:
        logger.error(f"Health check: store unreachable: {e.message}")
        store_ok = False

    body = {
        "status": "healthy" if store_ok else "degraded",
        "timestamp": time.time(),
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "store": {"backend": settings.STORE_BACKEND, "reachable": store_ok},
    }
    return JSONResponse(status_code=200 if store_ok else 503, content=body)
