"""
Dukkan Back Office FastAPI Application
Main application entry point
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from dukkan import __version__
from dukkan.api.v1 import api_v1_router
from dukkan.api.v1.health import router as health_router
from dukkan.core.config import settings
from dukkan.core.exceptions import (
    DukkanException,
    dukkan_exception_handler,
    request_validation_exception_handler,
)
from dukkan.core.logging_config import bind_request, reset_request, setup_logging
from dukkan.database.kv_store import KeyValueStore, create_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    Creates the key-value store handle once and shares it through app.state
    """
    setup_logging()
    logger.info(f"Starting {settings.PROJECT_NAME} {__version__} ({settings.ENVIRONMENT})")

    if getattr(app.state, "store", None) is None:
        app.state.store = create_store()

    if await app.state.store.ping():
        logger.info(f"  ✓ Key-value store ready ({settings.STORE_BACKEND})")
    else:
        logger.warning(f"  ⚠ Key-value store not reachable ({settings.STORE_BACKEND})")

    yield

    logger.info(f"Shutting down {settings.PROJECT_NAME}...")


def create_app(store: KeyValueStore = None) -> FastAPI:
    """
    Build the application.

    Args:
        store: Pre-built store handle (tests pass an in-memory store)
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Stock, sales, repairs and customer ledgers for a retail shop",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Propagate or assign X-Request-ID and expose it to log records"""
        request_id = request.headers.get("X-Request-ID") or f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id
        token = bind_request(request_id, request.method, request.url.path)

        start_time = time.time()
        try:
            response = await call_next(request)
        finally:
            reset_request(token)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        response.headers["X-API-Version"] = __version__
        return response

    app.add_exception_handler(DukkanException, dukkan_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

    app.include_router(health_router)
    app.include_router(api_v1_router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("dukkan.main:app", host="0.0.0.0", port=8000, reload=settings.ENVIRONMENT == "development")
