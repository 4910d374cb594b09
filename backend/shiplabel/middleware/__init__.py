# Middleware package init
"""
ShipLabel Backend - Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Request ID] → [Logging] → [Session] → Route Handler

    - Request ID: correlation ID in a ContextVar and the X-Request-ID header
    - Logging:    access log line with status and duration
    - Session:    Starlette SessionMiddleware (signed cookie) for the login gate
"""
