"""Transport-level rate limiting using slowapi.

Security: throttles magic link redemption per client IP so token guessing
is bounded at the edge, independently of the per-email/per-IP login limiter
in the token issuer.

Usage in routers:
    from admin_auth.core.rate_limiting import limiter, verify_rate_limit

    @router.get("/verify")
    @limiter.limit(verify_rate_limit)
    async def verify(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from admin_auth.core.config import Settings, settings
from admin_auth.core.errors import AuthErrorCode
from admin_auth.core.responses import ErrorResponse

# Global limiter instance
# In-memory storage by default (suitable for single-instance deployment)
# For multi-instance, point RATE_LIMIT_STORAGE_URI at Redis
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)

# Settings of the app currently served; limits are read per request
_active_settings: Settings = settings


def configure_limiter(app_settings: Settings) -> None:
    """Bind the shared limiter to an application's settings."""
    global _active_settings
    _active_settings = app_settings
    limiter.enabled = app_settings.rate_limit_enabled


def verify_rate_limit() -> str:
    return _active_settings.verify_rate_limit


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Security: Returns 429 Too Many Requests with the standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # Parse retry-after from exception detail (e.g., "10 per 1 minute")
    # Fallback to 60 seconds if parsing fails
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    code = AuthErrorCode.RATE_LIMITED
    return JSONResponse(
        status_code=code.status_code,
        content=ErrorResponse(
            error=code.value, message=code.default_message
        ).model_dump(exclude_none=True),
        headers={"Retry-After": retry_after},
    )
