# src/murmur_stage/main.py
"""Main entry point for the Murmur application."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from murmur_stage.api.v1 import (
    auth_router,
    notifications_router,
    polls_router,
    posts_router,
    realtime_router,
    search_router,
    users_router,
)
from murmur_stage.core.errors import register_exception_handlers
from murmur_stage.core.logging_setup import configure_logging
from murmur_stage.core.settings import settings
from murmur_stage.services.realtime import EventBus, RealtimeBroadcaster, connection_manager

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # A fresh queue per lifespan keeps it bound to the running event loop.
    app.state.event_bus = EventBus(loop=asyncio.get_running_loop())
    broadcaster = RealtimeBroadcaster(app.state.event_bus, connection_manager)
    await broadcaster.start()
    app.state.realtime_broadcaster = broadcaster
    logger.info("%s %s started", settings.app_name, settings.app_version)
    try:
        yield
    finally:
        await broadcaster.stop()
        logger.info("%s stopped", settings.app_name)


# Initialize FastAPI app
app = FastAPI(
    title="Murmur API",
    description="Social network API: posts, follows, engagement, polls and notifications",
    version=settings.app_version,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

register_exception_handlers(app)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(posts_router, prefix="/api/v1")
app.include_router(polls_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(search_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")
app.include_router(realtime_router, prefix="/api/v1")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Murmur API",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("murmur_stage.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
