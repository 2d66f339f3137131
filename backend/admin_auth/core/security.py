"""Credential helpers: token hashing, session credentials, cookies.

Pipeline:
- hash_token: magic link tokens are stored as SHA-256 hex digests
- create_session_credential / decode_session_credential: signed HS256 JWT
  naming the session; the server-side session record stays authoritative
- set_session_cookie / clear_session_cookie: httpOnly cookie management
"""

import hashlib
from datetime import datetime

import jwt
from fastapi import Response

from admin_auth.core.config import Settings

_ALGORITHM = "HS256"


def hash_token(token: str) -> str:
    """Return the SHA-256 hex digest used as the stored token key.

    Args:
        token: Plain magic link token as delivered in the email.

    Returns:
        64-char lowercase hex digest.
    """
    return hashlib.sha256(token.encode()).hexdigest()


def create_session_credential(
    *,
    user_id: str,
    session_id: str,
    issued_at: datetime,
    expires_at: datetime,
    settings: Settings,
) -> str:
    """Create the signed credential handed to the browser.

    Args:
        user_id: Owner of the session (sub claim).
        session_id: Server-side session key (sid claim).
        issued_at: Session creation time (iat claim).
        expires_at: Session expiry (exp claim).
        settings: Source of secret, issuer, and audience.

    Returns:
        Encoded JWT string.
    """
    payload = {
        "sub": user_id,
        "sid": session_id,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(
        payload, settings.auth_secret.get_secret_value(), algorithm=_ALGORITHM
    )


def decode_session_credential(credential: str, settings: Settings) -> str | None:
    """Verify a session credential and return the session id it names.

    Returning None (rather than raising) keeps the caller simple: any
    tampered, foreign, or malformed credential is treated as absent.

    Args:
        credential: Encoded JWT from cookie or header.
        settings: Source of secret, issuer, and audience.

    Returns:
        Session id, or None on any failure.
    """
    try:
        payload = jwt.decode(
            credential,
            settings.auth_secret.get_secret_value(),
            algorithms=[_ALGORITHM],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
            # Session lifetime is enforced against the session record with the
            # service clock; iat is informational only.
            options={"require": ["sub", "sid", "exp"], "verify_iat": False},
        )
    except jwt.InvalidTokenError:
        return None
    session_id = payload.get("sid")
    if not isinstance(session_id, str) or not session_id:
        return None
    return session_id


def set_session_cookie(response: Response, credential: str, settings: Settings) -> None:
    """Set the httpOnly session cookie on response.

    Security: httpOnly prevents XSS cookie theft; SameSite and the Secure
    flag come from settings (strict + secure by default). max_age matches the
    session TTL so cookie and session expire together.

    Args:
        response: FastAPI response object.
        credential: Encoded session credential.
        settings: Cookie configuration.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=credential,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=settings.session_cookie_max_age,
        domain=settings.auth_cookie_domain or None,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Delete the session cookie.

    Cookie attributes must match set_session_cookie() for browsers to delete.
    """
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )
