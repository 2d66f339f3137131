"""Structured outcome returned by the authentication services.

Expected failures (bad email, used token, rate limit) are values, not
exceptions: services return AuthResult.fail(code) and the route layer
decides how to render it.
"""

from dataclasses import dataclass, field
from typing import Any

from admin_auth.core.errors import AuthErrorCode


@dataclass(frozen=True)
class AuthResult:
    """Outcome of an authentication operation.

    Attributes:
        success: Whether the operation succeeded.
        message: Human-readable message safe to show to the caller.
        error: Failure kind; None on success.
        data: Payload on success (e.g. credential, user, session).
    """

    success: bool
    message: str
    error: AuthErrorCode | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, data: dict[str, Any] | None = None) -> "AuthResult":
        return cls(success=True, message=message, data=data or {})

    @classmethod
    def fail(cls, error: AuthErrorCode, message: str | None = None) -> "AuthResult":
        return cls(
            success=False,
            message=message or error.default_message,
            error=error,
        )
