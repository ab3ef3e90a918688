# src/batchmint/main.py
"""Main entry point for the Batch Mint application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from batchmint.api.v1 import nft_router, users_router
from batchmint.core.settings import settings
from batchmint.services.engine import get_engine
from batchmint.services.scheduler import MintSchedulerWorker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Batch commit-reveal minting API",
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

# Include API routers
app.include_router(nft_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.scheduler_enabled:
        worker = MintSchedulerWorker(get_engine())
        await worker.start()
        app.state.scheduler_worker = worker
    else:
        logger.info("Background scheduler disabled")
        app.state.scheduler_worker = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: MintSchedulerWorker | None = getattr(app.state, "scheduler_worker", None)
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
        "description": "Batch commit-reveal minting API",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("batchmint.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
