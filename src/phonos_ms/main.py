"""
FastAPI Application Entry Point.

Usage:
    uvicorn phonos_ms.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from phonos_ms import __version__
from phonos_ms.api.routes import router
from phonos_ms.core.logging import configure_logging, get_logger, info
from phonos_ms.services.pronunciation import reset_service

_LOG = get_logger("phonos-ms.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the service on startup (unless PHONOS_SKIP_WARMUP=1) and stop
    the job workers on shutdown.
    """
    if os.getenv("PHONOS_SKIP_WARMUP") != "1":
        from phonos_ms.api.dependencies import get_pronunciation_service
        service = get_pronunciation_service()
        info(_LOG, "startup", engine=service.engine.backend.display_name, version=__version__)
    yield
    reset_service()
    info(_LOG, "shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(title="phonos-ms", version=__version__, lifespan=lifespan)
    app.include_router(router)
    return app


app = create_app()
