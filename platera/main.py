"""
Platera Backend — FastAPI Application Factory
=============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers, and
       attaches the process-scoped collaborators to `app.state`:
           app.state.database  → Database (engine + session factory)
           app.state.identity  → IdentityProvider (Clerk by default)
       Tests pass their own collaborators; uvicorn imports `platera.main:app`.

Lifecycle:
    Startup:
    1. Configure logging
    2. Validate configuration (logged, not fatal: /health stays reachable)
    Shutdown:
    1. Close the identity provider HTTP client
    2. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from platera import __version__
from platera.config import settings
from platera.database import Database
from platera.exceptions import (
    AuthenticationError,
    CircuitBreakerOpenError,
    ConflictError,
    DatabaseError,
    IdentityProviderError,
    MediaHostError,
    NotFoundError,
    PermissionDeniedError,
    PlateraError,
    RateLimitExceededError,
    ValidationError,
)
from platera.middleware.logging import RequestLoggingMiddleware
from platera.middleware.rate_limit import RateLimitMiddleware
from platera.middleware.request_id import RequestIDMiddleware, request_id_var
from platera.routes import comments, health, recipes, reviews, uploads, users, webhooks
from platera.services.clerk_service import ClerkIdentityProvider
from platera.services.identity_base import IdentityProvider

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-request noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Platera Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Platera Backend shutting down...")
    await app.state.identity.aclose()
    await app.state.database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy to HTTP responses.

        ValidationError         → 400
        AuthenticationError     → 401
        PermissionDeniedError   → 403
        NotFoundError           → 404
        ConflictError           → 409
        RateLimitExceededError  → 429
        DatabaseError           → 500 (generic message)
        MediaHostError          → 502
        IdentityProviderError   → 503
        CircuitBreakerOpenError → 503
        PlateraError / Exception → 500

    5xx bodies never carry internal context; it is logged instead.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(
            401,
            "authentication_required",
            exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(request: Request, exc: PermissionDeniedError):
        return _error_response(403, "permission_denied", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc.message)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error_response(
            429,
            "rate_limit_exceeded",
            exc.message,
            exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(MediaHostError)
    async def handle_media_host_error(request: Request, exc: MediaHostError):
        logger.error("[%s] Media host error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(502, "media_host_error", exc.message)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            {"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(IdentityProviderError)
    async def handle_identity_error(request: Request, exc: IdentityProviderError):
        logger.error("[%s] Identity provider error: %s", request_id_var.get(""), exc.message)
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return _error_response(503, "identity_service_error", exc.message, headers=headers)

    @app.exception_handler(PlateraError)
    async def handle_platera_error(request: Request, exc: PlateraError):
        logger.error("[%s] Unhandled application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    database: Optional[Database] = None,
    identity: Optional[IdentityProvider] = None,
) -> FastAPI:
    """
    Assemble the application.

    Args:
        database: Store handle; built from settings when omitted.
        identity: Identity provider; ClerkIdentityProvider when omitted.
    """
    app = FastAPI(
        title="Platera API",
        description="Recipe sharing: community feed, recipes, reviews, comments and bookmarks.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.database = database or Database.from_settings(settings)
    app.state.identity = identity or ClerkIdentityProvider(settings)

    # ── Middleware (last added runs first) ────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(recipes.router)
    app.include_router(reviews.router)
    app.include_router(comments.router)
    app.include_router(users.router)
    app.include_router(uploads.router)
    app.include_router(webhooks.router)
    app.include_router(health.router)

    return app


app = create_app()
