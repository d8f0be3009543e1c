"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from handoff_queue import __version__
from handoff_queue.api.routes import operators, queue, ws
from handoff_queue.db.connection import close_database, get_database
from handoff_queue.events import event_bus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info("Starting Handoff Queue API...")
    app.state.db = await get_database()
    app.state.event_bus = event_bus
    logger.info("Database connected")

    yield

    logger.info("Shutting down Handoff Queue API...")
    await close_database()
    logger.info("Database disconnected")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Handoff Queue",
        description="Priority work distribution for escalated support conversations",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Operator consoles are served from other origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(queue.router, prefix="/api/queue", tags=["queue"])
    app.include_router(operators.router, prefix="/api/operators", tags=["operators"])
    app.include_router(ws.router, prefix="/ws", tags=["websocket"])

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return app


# Create the app instance
app = create_app()
