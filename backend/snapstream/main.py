"""
SnapStream Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers onto a
       FastAPI app whose lifespan owns the Database handle and the reaper.
Who:   uvicorn (`uvicorn snapstream.main:app`) and the test suite, which
       calls create_app(database=...) with its own SQLite-backed handle.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware:  RateLimit → RequestID → Logging → GZip → CORS
    │                                                          │
    │  Routes:                                                 │
    │    /api/signup  /api/login  /api/snaps  /api/feed        │
    │    /ws/snaps    /health                                  │
    │                                                          │
    │  app.state:  database (Database)                         │
    │              broadcaster (SnapBroadcaster)               │
    │              reaper (ExpiryReaper, set at startup)       │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Warn about insecure configuration
    3. Open (or adopt) the Database handle; create tables if DB_AUTO_CREATE
    4. Ensure the staging directory exists
    5. Start the expiry reaper (first pass runs immediately)

    Shutdown:
    1. Stop the reaper scheduler
    2. Dispose the database engine if this app created it
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from snapstream import __version__
from snapstream.config import settings
from snapstream.database import Database
from snapstream.exceptions import (
    AuthenticationError,
    DatabaseError,
    FileStorageError,
    NotFoundError,
    RateLimitExceededError,
    SnapStreamError,
    ValidationError,
)
from snapstream.middleware.logging import RequestLoggingMiddleware
from snapstream.middleware.rate_limit import RateLimitMiddleware
from snapstream.middleware.request_id import RequestIDMiddleware, request_id_var
from snapstream.routes import auth, feed, health, live, snaps
from snapstream.services.broadcaster import SnapBroadcaster
from snapstream.services.reaper import ExpiryReaper

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("SnapStream Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.warning("Configuration warning: %s", str(e))

    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database.from_settings(settings)
    database: Database = app.state.database

    if settings.db_auto_create:
        await database.create_all()
        logger.info("Database tables ensured (DB_AUTO_CREATE)")

    staging = Path(settings.storage_root) / "staging"
    staging.mkdir(parents=True, exist_ok=True)
    logger.info("Upload staging directory: %s", staging.resolve())

    reaper = ExpiryReaper.from_settings(database.session_factory, settings)
    reaper.start()
    app.state.reaper = reaper

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("SnapStream Backend shutting down...")
    reaper.stop()
    if owns_database:
        await database.dispose()
        app.state.database = None
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the SnapStream exception hierarchy onto HTTP responses.

        ValidationError         → 400
        AuthenticationError     → 401 (WWW-Authenticate: Bearer)
        NotFoundError           → 404
        RateLimitExceededError  → 429 (Retry-After)
        FileStorageError        → 500
        DatabaseError           → 500 (generic message)
        SnapStreamError         → 500
        Exception               → 500 (stack trace logged, never returned)
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=401,
            content=_error_body("authentication_error", exc.message),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body("rate_limit_exceeded", exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        rid = request_id_var.get("")
        logger.error("[%s] File storage error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "server_error", "An internal error occurred. Please try again later."
            ),
        )

    @app.exception_handler(SnapStreamError)
    async def handle_snapstream_error(request: Request, exc: SnapStreamError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Pre-built storage handle. When given, the app uses it and
                  leaves disposing it to the caller; otherwise the lifespan
                  builds one from settings and disposes it at shutdown.
    """
    app = FastAPI(
        title="SnapStream API",
        description=(
            "Ephemeral photo sharing: upload a snap with caption, location and "
            "hashtags; it appears in the public feed for 12 hours and is then deleted."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.broadcaster = SnapBroadcaster()
    app.state.reaper = None

    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(snaps.router)
    app.include_router(feed.router)
    app.include_router(live.router)
    app.include_router(health.router)

    return app


app = create_app()
