"""API error classes and the authentication error taxonomy.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Type-safe error handling in services and route handlers

Services never raise for expected outcomes (bad email, used token, rate
limit); they return an AuthResult carrying an AuthErrorCode. Route handlers
turn a failed result into AuthError, which the exception handler renders.
"""

from enum import Enum


class AuthErrorCode(str, Enum):
    """Stable, machine-readable failure kinds.

    Values:
        INVALID_INPUT: Malformed request body or query string.
        INVALID_EMAIL: Email fails the format check.
        INVALID_TOKEN: Unknown (or unusable) magic link token.
        EXPIRED_TOKEN: Magic link token past its expiry.
        ALREADY_USED: Magic link token already redeemed (replay).
        RATE_LIMITED: Too many login attempts for the email or origin.
        NOT_AUTHENTICATED: No session, or the session is invalid/expired.
        FORBIDDEN: Authenticated but lacking the required permission.
        INTERNAL_ERROR: Store or IO failure.
    """

    INVALID_INPUT = "INVALID_INPUT"
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_TOKEN = "INVALID_TOKEN"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    ALREADY_USED = "ALREADY_USED"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @property
    def status_code(self) -> int:
        """HTTP status the web boundary uses for this failure kind."""
        return _STATUS_CODES[self]

    @property
    def default_message(self) -> str:
        """Human-readable message safe to show to any caller."""
        return _DEFAULT_MESSAGES[self]


_STATUS_CODES: dict[AuthErrorCode, int] = {
    AuthErrorCode.INVALID_INPUT: 400,
    AuthErrorCode.INVALID_EMAIL: 400,
    AuthErrorCode.INVALID_TOKEN: 400,
    AuthErrorCode.EXPIRED_TOKEN: 400,
    AuthErrorCode.ALREADY_USED: 400,
    AuthErrorCode.RATE_LIMITED: 429,
    AuthErrorCode.NOT_AUTHENTICATED: 401,
    AuthErrorCode.FORBIDDEN: 403,
    AuthErrorCode.INTERNAL_ERROR: 500,
}

_DEFAULT_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_INPUT: "Request validation failed.",
    AuthErrorCode.INVALID_EMAIL: "Please provide a valid email address.",
    AuthErrorCode.INVALID_TOKEN: "Invalid or expired magic link.",
    AuthErrorCode.EXPIRED_TOKEN: "Magic link has expired.",
    AuthErrorCode.ALREADY_USED: "Magic link has already been used.",
    AuthErrorCode.RATE_LIMITED: "Too many requests. Please try again later.",
    AuthErrorCode.NOT_AUTHENTICATED: "Authentication required.",
    AuthErrorCode.FORBIDDEN: "Permission denied.",
    AuthErrorCode.INTERNAL_ERROR: "An unexpected error occurred.",
}


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "FORBIDDEN").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class AuthError(APIError):
    """An authentication/authorization failure with a taxonomy code.

    Status code and default message come from the code, so raising sites
    only pick the kind.
    """

    def __init__(
        self,
        code: AuthErrorCode,
        message: str | None = None,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code.value,
            message=message or code.default_message,
            status_code=code.status_code,
            details=details,
        )
        self.error_code = code


class UnauthorizedError(AuthError):
    """Authentication required (401).

    Security: the message never says WHY (missing, expired, revoked,
    tampered) authentication failed.
    """

    def __init__(self) -> None:
        super().__init__(AuthErrorCode.NOT_AUTHENTICATED)


class ForbiddenError(AuthError):
    """Authenticated but not allowed (403)."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(AuthErrorCode.FORBIDDEN, message)


class InternalError(AuthError):
    """Unexpected server error (500).

    Use for store/IO failures. Never expose internal detail to clients.
    """

    def __init__(self) -> None:
        super().__init__(AuthErrorCode.INTERNAL_ERROR)
