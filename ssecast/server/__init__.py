# ssecast/server/__init__.py
"""ssecast server - named SSE broadcast channels with Last-Event-ID replay."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import Settings, settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("ssecast.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    app.state.started_at = time.time()
    logger.info("ssecast server starting")
    yield
    logger.info("ssecast server shutting down...")
    await app.state.registry.shutdown()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings; defaults to the environment-derived instance.
    """
    from . import config
    from .models import HealthResponse
    from .registry import ChannelRegistry
    from .routes import publish, stream

    settings = settings or config.settings

    app = FastAPI(lifespan=lifespan, title="ssecast")
    app.state.settings = settings
    app.state.registry = ChannelRegistry(settings)
    app.state.started_at = time.time()

    app.include_router(stream.router)
    app.include_router(publish.router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        registry = app.state.registry
        return HealthResponse(
            status="ok",
            channels=len(registry),
            clients=registry.client_count,
            uptime_s=time.time() - app.state.started_at,
        )

    return app


app = create_app()
