"""Application factory for the health server.

The bot itself talks to Telegram by long polling; this small FastAPI app only
exposes probes for orchestrators. It receives the directory explicitly so
tests can hand in an in-memory one.
"""

from __future__ import annotations

from fastapi import FastAPI

from rolebot.api.routes import health_router
from rolebot.core.config import settings
from rolebot.core.exception_handlers import setup_exception_handlers
from rolebot.core.middleware import request_id_middleware
from rolebot.services.directory import Directory


def create_app(directory: Directory, *, check_timeout_seconds: float | None = None) -> FastAPI:
    """Create and configure the health server.

    Args:
        directory: Directory whose storage is probed.
        check_timeout_seconds: Per-probe timeout; defaults to HEALTH_CHECK_TIMEOUT_SECONDS.

    Returns:
        Configured FastAPI app with middleware, handlers and routes.
    """
    app = FastAPI(
        title="rolebot health",
        description="Liveness and readiness probes for the Telegram role bot.",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
    )

    app.state.directory = directory
    app.state.check_timeout_seconds = (
        check_timeout_seconds
        if check_timeout_seconds is not None
        else settings.health.check_timeout_seconds
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)
    app.include_router(health_router)

    return app
