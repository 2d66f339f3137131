"""FastAPI application entry point.

This module creates and configures the FastAPI application, including:
- Service container wiring and the periodic credential cleanup task
- Exception handlers rendering the {success: false, error, message} envelope
- API v1 router mounting
- Health check endpoint
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from admin_auth.api.v1.router import router as v1_router
from admin_auth.core.config import Settings, settings
from admin_auth.core.errors import APIError, AuthErrorCode
from admin_auth.core.logging import configure_logging
from admin_auth.core.rate_limiting import (
    configure_limiter,
    limiter,
    rate_limit_exceeded_handler,
)
from admin_auth.core.responses import ErrorResponse
from admin_auth.services.container import ServiceContainer

logger = structlog.get_logger()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers added:
    - X-Frame-Options: Prevents clickjacking attacks
    - X-Content-Type-Options: Prevents MIME sniffing
    - Referrer-Policy: Controls referrer information leakage (endpoints may
      set a stricter value, which is kept)
    - Cache-Control: Prevents caching of auth responses
    - Content-Security-Policy: Restricts resource loading (API returns no HTML)
    - Strict-Transport-Security: Forces HTTPS (production only)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")

        # Session credentials and user data must never be cached
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"

        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )

        # HSTS only in production (assumes HTTPS via reverse proxy)
        if request.app.state.settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors.

    Args:
        request: The incoming request.
        exc: The APIError that was raised.

    Returns:
        JSONResponse with error envelope and appropriate status code.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.code,
            message=exc.message,
            details=exc.details,
        ).model_dump(exclude_none=True),
    )


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors from FastAPI.

    Converts FastAPI's validation errors to INVALID_INPUT with field-level
    details.

    Args:
        request: The incoming request.
        exc: The RequestValidationError from Pydantic.

    Returns:
        JSONResponse with INVALID_INPUT code (400).
    """
    code = AuthErrorCode.INVALID_INPUT
    return JSONResponse(
        status_code=code.status_code,
        content=ErrorResponse(
            error=code.value,
            message=code.default_message,
            details=[
                {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                for e in exc.errors()
            ],
        ).model_dump(),
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    Never expose internal error details to clients. Log for debugging.

    Args:
        request: The incoming request.
        exc: The unhandled exception.

    Returns:
        JSONResponse with generic error message (500).
    """
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))

    code = AuthErrorCode.INTERNAL_ERROR
    return JSONResponse(
        status_code=code.status_code,
        content=ErrorResponse(
            error=code.value, message=code.default_message
        ).model_dump(exclude_none=True),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build (if needed) and bootstrap the container; run periodic cleanup."""
    app_settings: Settings = app.state.settings
    configure_logging(
        app_settings.log_level, json_logs=app_settings.environment == "production"
    )

    container: ServiceContainer | None = getattr(app.state, "container", None)
    if container is None:
        container = ServiceContainer.build(app_settings)
        app.state.container = container

    await container.bootstrap()
    cleanup_task = asyncio.create_task(container.run_cleanup_loop())
    logger.info(
        "Admin auth service started",
        credential_store=container.settings.credential_store,
        environment=container.settings.environment,
    )
    try:
        yield
    finally:
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
        await container.close()


def create_app(
    app_settings: Settings | None = None,
    *,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use (defaults to the module singleton).
        container: Pre-built services. Tests pass one so requests work
            without running the lifespan; otherwise the lifespan builds it.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = app_settings or (container.settings if container else settings)

    app = FastAPI(
        title="Metrica Admin Auth API",
        version="1.0.0",
        description="Passwordless magic link authentication for the admin panel",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    if container is not None:
        app.state.container = container

    # Middleware order: Starlette uses LIFO, so the LAST added runs FIRST.
    # CORS must run first to handle preflight requests, so add it last.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization", "X-Auth-Token"],
    )

    # Client address (Security)
    # Forwarded headers rewrite request.client only when the socket peer is a
    # configured proxy; otherwise a caller could pick its own rate-limit key.
    # Added last so it runs before everything else.
    if app_settings.forwarded_allow_ips:
        app.add_middleware(
            ProxyHeadersMiddleware,
            trusted_hosts=app_settings.forwarded_allow_ips,
        )

    # Register exception handlers
    # Order matters: specific handlers first, then catch-all
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    # Rate limiting (Security)
    # Bounds magic link redemption attempts per client IP
    app.state.limiter = limiter
    configure_limiter(app_settings)

    app.include_router(v1_router, prefix="/api/v1")

    # Health check endpoint (outside versioned API)
    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint for monitoring.

        Returns:
            {"status": "healthy"} if service is running.
        """
        return {"status": "healthy"}

    return app


# Create the application instance
# Used by uvicorn: uvicorn admin_auth.main:app
app = create_app()
