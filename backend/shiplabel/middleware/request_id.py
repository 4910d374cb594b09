"""
ShipLabel Backend - Request ID Middleware
===========================================

What:  Assigns a short correlation ID to each request and echoes it back.
How:   Reads X-Request-ID from the client or generates one, stores it in a
       ContextVar for loggers and in request.state for handlers, and sets
       the X-Request-ID response header.
When:  Outermost application middleware, so every log line of a request
       (access log, pipeline log, error handlers) shares the same ID.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware that tags each request with an ID for tracing."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
