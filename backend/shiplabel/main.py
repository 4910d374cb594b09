"""
ShipLabel Backend - FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() wires services onto app.state,
       registers middleware, exception handlers and routers.
Who:   Called by uvicorn (uvicorn shiplabel.main:app) and by the tests,
       which pass in-memory collaborators.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌─────────────────┐      │
    │  │ Req ID   │→│ Logging  │→│ Session cookie  │      │
    │  └──────────┘ └──────────┘ └─────────────────┘      │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌─────────────────┐ ┌──────────┐  │
    │  │ login/logout │ │ /generate-label │ │ /health  │  │
    │  └──────────────┘ └─────────────────┘ └──────────┘  │
    │                                                     │
    │  Exception Handlers (plain text):                   │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ Validation→400 │ Auth→303 / │ Stream/IO→500  │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Check security-sensitive settings (logged, not fatal)
    3. Clear the scratch store (artifacts orphaned by a previous crash)
    4. Create the bootstrap user

    Shutdown:
    1. Log shutdown complete
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from shiplabel import __version__
from shiplabel.config import Settings, settings
from shiplabel.exceptions import (
    FileStorageError,
    NotAuthenticatedError,
    ShipLabelError,
    StreamError,
    ValidationError,
)
from shiplabel.middleware.logging import RequestLoggingMiddleware
from shiplabel.middleware.request_id import RequestIDMiddleware, request_id_var
from shiplabel.routes import auth, health, labels
from shiplabel.services.artifact_store import ArtifactStore, FileArtifactStore
from shiplabel.services.auth_service import AuthService, InMemoryUserDirectory, UserDirectory
from shiplabel.services.barcode_service import BarcodeRenderer
from shiplabel.services.document_service import LabelDocumentComposer
from shiplabel.services.label_service import LabelService

logger = logging.getLogger(__name__)

GENERATION_FAILED = "Error generating label"
UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # Third-party loggers that are chatty at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Manage application lifecycle.

    Code before yield runs on startup, code after yield on shutdown.
    Startup failures (e.g. a scratch directory that cannot be emptied)
    propagate and stop the server.
    """
    app_settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("ShipLabel Backend %s starting up...", __version__)

    try:
        app_settings.validate_required_for_production()
    except ValueError as e:
        logger.warning("Configuration warning: %s", str(e))

    store: ArtifactStore = app.state.label_service.store
    removed = await store.clear_all()
    logger.info("Scratch store %s cleared (%d stale artifacts removed)", store.describe(), removed)

    await app.state.auth_service.ensure_default_user(
        app_settings.default_username,
        app_settings.default_password,
    )

    logger.info("Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("ShipLabel Backend shut down.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to plain-text HTTP responses.

    Handler hierarchy:
        ValidationError        → 400 Bad Request (message is safe to show)
        NotAuthenticatedError  → 303 See Other → /
        StreamError            → 500 (before headers only; afterwards the
                                 pipeline logs and closes the stream)
        FileStorageError       → 500
        ShipLabelError (base)  → 500
        Exception (fallback)   → 500

    Responses never include paths, context dicts or tracebacks; those go
    to the log together with the request ID.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return PlainTextResponse(exc.message, status_code=400)

    @app.exception_handler(NotAuthenticatedError)
    async def handle_not_authenticated(request: Request, exc: NotAuthenticatedError):
        return RedirectResponse("/", status_code=303)

    @app.exception_handler(StreamError)
    async def handle_stream_error(request: Request, exc: StreamError):
        rid = request_id_var.get("")
        logger.error("[%s] Label generation failed: %s | Context: %s", rid, exc.message, exc.context)
        return PlainTextResponse(GENERATION_FAILED, status_code=500)

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        rid = request_id_var.get("")
        logger.error("[%s] File storage error: %s | Context: %s", rid, exc.message, exc.context)
        return PlainTextResponse(GENERATION_FAILED, status_code=500)

    @app.exception_handler(ShipLabelError)
    async def handle_app_error(request: Request, exc: ShipLabelError):
        rid = request_id_var.get("")
        logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return PlainTextResponse(GENERATION_FAILED, status_code=500)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return PlainTextResponse(UNEXPECTED_ERROR, status_code=500)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    app_settings: Optional[Settings] = None,
    artifact_store: Optional[ArtifactStore] = None,
    user_directory: Optional[UserDirectory] = None,
    renderer: Optional[BarcodeRenderer] = None,
    composer: Optional[LabelDocumentComposer] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every collaborator can be injected; anything left as None is built
    from `app_settings` (default: the module-level settings singleton).
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="ShipLabel API",
        description="Generates printable delivery labels with a Code-128 delivery barcode.",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Services ──────────────────────────────────────────────────────────
    store = artifact_store or FileArtifactStore(app_settings.scratch_dir)
    label_service = LabelService(
        store=store,
        renderer=renderer or BarcodeRenderer(
            module_width=app_settings.barcode_module_width,
            module_height=app_settings.barcode_module_height,
            font_size=app_settings.barcode_font_size,
        ),
        composer=composer or LabelDocumentComposer(compress=app_settings.pdf_compression),
        timeout=app_settings.generation_timeout,
    )
    auth_service = AuthService(
        directory=user_directory or InMemoryUserDirectory(),
        rounds=app_settings.bcrypt_rounds,
    )

    app.state.settings = app_settings
    app.state.label_service = label_service
    app.state.auth_service = auth_service

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = outermost. Execution order: RequestID → Logging → Session.
    app.add_middleware(
        SessionMiddleware,
        secret_key=app_settings.session_secret,
        max_age=app_settings.session_max_age,
        same_site="lax",
        https_only=app_settings.secure_cookies,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(labels.router)
    app.include_router(health.router)

    return app


# uvicorn entry point: uvicorn shiplabel.main:app
app = create_app()
