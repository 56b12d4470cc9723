"""HTTP middleware for correlation-id propagation on the health server.

The middleware:
- Accepts an incoming correlation header (``LOG_REQUEST_ID_HEADER``) or
  generates a UUID
- Binds it to the logging context for the duration of the request
- Echoes it and the request duration in the response headers

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from rolebot.core.config import settings
from rolebot.core.logging import clear_correlation_id, set_correlation_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a correlation id to the request and report it back.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with correlation and duration headers.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_correlation_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_correlation_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
