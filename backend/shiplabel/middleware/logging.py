"""
ShipLabel Backend - Request Logging Middleware
================================================

What:  One access-log line per HTTP request.
How:   Times the handler, then logs method, path, status, duration, request
       ID and client IP on the `shiplabel.access` logger.
When:  Runs inside RequestIDMiddleware so the request ID is available.

Log levels:
    5xx → ERROR, 4xx → WARNING, everything else → INFO.
    /health is not logged.

For streamed PDFs the duration covers label preparation up to the first
chunk; the pipeline logs its own line when the stream completes.

Never logged: request bodies (sender/receiver addresses are personal data),
cookies, Authorization headers.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from shiplabel.middleware.request_id import request_id_var

logger = logging.getLogger("shiplabel.access")

UNLOGGED_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs structured information about each HTTP request and response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in UNLOGGED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
