"""
ShipLabel Backend - Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for each stage of the label pipeline.
How:   Each exception carries a user-safe message and an optional context
       dict. Global exception handlers (registered in main.py) turn them
       into plain-text HTTP responses; the context is only ever logged.
Who:   Raised by services and dependencies; caught by global handlers or
       by the label pipeline itself.

Exception Hierarchy:
    ShipLabelError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── NotAuthenticatedError    → 303 redirect to the login page
    ├── RenderError              → degraded to a placeholder in the document
    ├── FileStorageError         → 500 Internal Server Error
    ├── StreamError              → 500 before headers are sent, logged after
    │   └── GenerationTimeoutError
    └── CleanupError             → logged only, never reaches the client

Every pipeline exception records the delivery identifier and the stage
that failed, so a single log line is enough to diagnose a request.
"""

from typing import Any, Dict, Optional


class ShipLabelError(Exception):
    """
    Base exception for all ShipLabel application errors.

    Attributes:
        message:  User-facing error description (safe to return in a response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(ShipLabelError):
    """
    Raised when a submitted label form is missing a required field.

    HTTP:  400 Bad Request, plain-text body.
    When:  senderName or receiverName absent or empty. Raised before any
           identifier is minted or any scratch file is written.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotAuthenticatedError(ShipLabelError):
    """Raised by the session gate when no logged-in marker is present."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Authentication required", context=context)


class _PipelineError(ShipLabelError):
    """Shared shape for errors tied to one delivery identifier and stage."""

    def __init__(
        self,
        message: str,
        delivery_id: Optional[str] = None,
        stage: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if delivery_id:
            ctx["delivery_id"] = delivery_id
        if stage:
            ctx["stage"] = stage
        super().__init__(message=message, context=ctx)
        self.delivery_id = delivery_id
        self.stage = stage


class RenderError(_PipelineError):
    """
    Raised when the barcode library cannot encode the delivery identifier.

    Recovery:
        The label pipeline catches this and composes the document with the
        "Error generating barcode" placeholder instead of an image.
    """

    def __init__(
        self,
        message: str = "Barcode rendering failed",
        delivery_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, delivery_id=delivery_id, stage="render", context=context)


class FileStorageError(_PipelineError):
    """
    Raised when the scratch directory cannot be written or read.

    HTTP:  500 Internal Server Error (generic message; paths stay in logs).
    """

    def __init__(
        self,
        message: str = "Scratch storage operation failed",
        delivery_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, delivery_id=delivery_id, stage="store", context=context)


class StreamError(_PipelineError):
    """
    Raised when the document cannot be produced or written out.

    Before the response headers are committed this maps to a 500.
    After that point the status can no longer change: the stream is
    closed and the failure is logged.
    """

    def __init__(
        self,
        message: str = "Error generating label",
        delivery_id: Optional[str] = None,
        stage: str = "compose",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, delivery_id=delivery_id, stage=stage, context=context)


class GenerationTimeoutError(StreamError):
    """Raised when a label is not finished within the configured deadline."""

    def __init__(
        self,
        timeout: float,
        delivery_id: Optional[str] = None,
        stage: str = "compose",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["timeout"] = timeout
        super().__init__(
            message="Label generation timed out",
            delivery_id=delivery_id,
            stage=stage,
            context=ctx,
        )
        self.timeout = timeout


class CleanupError(_PipelineError):
    """Raised when a barcode artifact cannot be deleted. Logged, never surfaced."""

    def __init__(
        self,
        message: str = "Failed to delete barcode artifact",
        delivery_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, delivery_id=delivery_id, stage="cleanup", context=context)
