"""HTTP middleware for request correlation and access logging.

Every request/response pair carries a request id: the incoming header value
(``LOG_REQUEST_ID_HEADER``, default ``X-Request-ID``) or a fresh UUID. The id
is stored in a contextvar for the duration of the request so all log lines,
including those emitted from threadpool handlers, are correlated.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger("app.access")


async def request_id_middleware(request: Request, call_next) -> Response:
    """Assign a request id, time the request and log its outcome.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Request-ID`` and
            ``X-Request-Duration-ms`` headers added.
    """

    header_name = request.app.state.settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
