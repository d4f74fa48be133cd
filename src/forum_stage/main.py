# src/forum_stage/main.py
"""Main entry point for the Forum Stage application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from forum_stage.api.error_handlers import register_error_handlers
from forum_stage.api.v1 import auth_router, reactions_router, system_router
from forum_stage.api.v1.dependencies import get_session_store
from forum_stage.core.settings import settings
from forum_stage.db.session import SessionLocal, create_tables
from forum_stage.services.session_sweep import SessionSweepWorker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Forum Stage API",
    description="Sessions, federated identity and reactions for a discussion forum",
    version=settings.app_version,
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

register_error_handlers(app)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(reactions_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    create_tables()
    if settings.session_sweep_enabled:
        worker = SessionSweepWorker(
            get_session_store(),
            SessionLocal,
            settings.session_sweep_interval_seconds,
        )
        await worker.start()
        app.state.session_sweeper = worker
        logger.info(
            "Session sweep scheduled every %.0f seconds", settings.session_sweep_interval_seconds
        )
    else:
        app.state.session_sweeper = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: SessionSweepWorker | None = getattr(app.state, "session_sweeper", None)
    if worker:
        await worker.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run("forum_stage.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
