"""
Best Shot Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers;
       lifespan() starts the live tally aggregator and releases the database
       pool on shutdown.
Who:   uvicorn bestshot.main:app

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────┐ ┌──────────┐  │
    │  │ Code Guess   │→│ Req ID   │→│ Logging │→│GZip/CORS │  │
    │  └──────────────┘ └──────────┘ └─────────┘ └──────────┘  │
    │                                                          │
    │  Routes:                                                 │
    │  ┌────────────┐ ┌────────────┐ ┌────────────┐ ┌───────┐  │
    │  │ /api/vote  │ │ /api/tally │ │ /api/admin │ │/health│  │
    │  └────────────┘ └────────────┘ └────────────┘ └───────┘  │
    │                                                          │
    │  Background:  tally aggregator task (change feed → WS)   │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   logging → tally aggregator (first snapshot) → ready
    Shutdown:  stop aggregator → dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from bestshot import __version__
from bestshot.config import settings
from bestshot.database import dispose_engine
from bestshot.exceptions import (
    BestShotError,
    CircuitBreakerOpenError,
    ConflictError,
    DatabaseError,
    ExportError,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
    WriteError,
)
from bestshot.middleware.logging import RequestLoggingMiddleware
from bestshot.middleware.rate_limit import CodeGuessLimitMiddleware
from bestshot.middleware.request_id import RequestIDMiddleware, request_id_var
from bestshot.routes import admin, health, tally, vote
from bestshot.services.tally_service import tally_aggregator

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: 2024-05-04T12:00:00 [INFO] bestshot.services.vote_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Best Shot Backend %s starting up...", __version__)

    await tally_aggregator.start()

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Best Shot Backend shutting down...")
    try:
        await tally_aggregator.stop()
    finally:
        await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details=None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy to HTTP responses.

        ValidationError         → 400
        NotFoundError           → 404
        ConflictError           → 409 (already completed, export running)
        RateLimitExceededError  → 429
        WriteError              → 500 write_error (retriable, nothing saved)
        DatabaseError           → 500 server_error
        ExportError             → 500 export_error
        BestShotError / other   → 500

    Context is logged; only ValidationError returns it to the client.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=_error_body("not_found", exc.message))

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        logger.info("[%s] Conflict: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=409, content=_error_body("conflict", exc.message))

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body("rate_limit_exceeded", exc.message, {"retry_after": exc.retry_after}),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(WriteError)
    async def handle_write_error(request: Request, exc: WriteError):
        logger.error("[%s] Write error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body("write_error", exc.message))

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(ExportError)
    async def handle_export_error(request: Request, exc: ExportError):
        logger.error("[%s] Export error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body("export_error", exc.message))

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        # The exporter turns this into placeholders; reaching here is a bug
        logger.error("[%s] Circuit breaker error escaped: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=503,
            content=_error_body("service_unavailable", exc.message),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(BestShotError)
    async def handle_app_error(request: Request, exc: BestShotError):
        logger.error("[%s] Unhandled application error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=500, content=_error_body("server_error", exc.message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact the organizers.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Best Shot API",
        description=(
            "Wedding photo voting. Guests open a personal link, pick exactly ten "
            "photos and submit once; the couple follows a live tally, manages "
            "participants and downloads the top photos as a PDF."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware runs in reverse order of addition: the guessing limiter
    # sees the request first, CORS last
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After", "Content-Disposition"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(CodeGuessLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(vote.router)
    app.include_router(tally.router)
    app.include_router(admin.router)
    app.include_router(health.router)

    return app


app = create_app()
