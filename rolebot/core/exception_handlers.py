"""Exception handlers for the health server.

- StorageAppError -> 503 (storage unreachable or too slow)
- Any other AppError -> 500
- Unexpected Exception -> generic 500 with no implementation details
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rolebot.core.errors import AppError, StorageAppError
from rolebot.core.logging import get_correlation_id

logger = logging.getLogger(__name__)


def status_for(exc: AppError) -> int:
    if isinstance(exc, StorageAppError):
        return 503
    return 500


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error as ``{"error": {code, message, request_id, details?}}``."""
    status_code = status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
            "has_details": bool(exc.details),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_correlation_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(status_code=status_code, content={"error": error_content})


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler: log the failure, return a generic 500."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_correlation_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the AppError handler and the generic fallback on ``app``."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
