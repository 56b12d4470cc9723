from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request

from rolebot.core.errors import StorageAppError
from rolebot.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


async def _probe_storage(request: Request, probe: str) -> HealthResponse:
    """Ping the directory with a bounded timeout.

    Raises:
        StorageAppError: The ping failed or did not finish in time; rendered
            as 503 by the registered exception handler.
    """
    directory = request.app.state.directory
    timeout_seconds = request.app.state.check_timeout_seconds
    loop = asyncio.get_running_loop()

    try:
        await asyncio.wait_for(
            loop.run_in_executor(None, directory.ping),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        logger.error("health.timeout", extra={"probe": probe, "timeout_seconds": timeout_seconds})
        raise StorageAppError(
            code="storage_timeout",
            message="storage ping timed out",
            details={"operation": probe},
        ) from exc

    return HealthResponse(status="ok", storage="ok")


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.

    Returns 200 when the directory answers a trivial query within the
    configured timeout, 503 otherwise.
    """

    return await _probe_storage(request, "health")


@router.get("/ready", response_model=HealthResponse)
async def readiness_check(request: Request) -> HealthResponse:
    """Readiness probe; same storage check as /health."""

    return await _probe_storage(request, "ready")
