"""Magic link issuance.

Flow for request_magic_link():
1. Syntactic email check (email-validator, no DNS) -> INVALID_EMAIL
2. Normalize, then rate limit on both the email and ip keys -> RATE_LIMITED
3. Look up the user; unknown or non-active users get the same success
   response as the happy path; no token is stored and no email is sent
4. Persist only the hash of the 256-bit token, and hand the link to
   the email sender, as a background task when the caller provides one

Security: the response never reveals whether the address is registered,
and the raw token only ever leaves this module inside the email. Delivery
runs after the response is sent, so an HTTP call to the email provider does
not make registered addresses measurably slower.
"""

from datetime import timedelta

from email_validator import EmailNotValidError, validate_email
from fastapi import BackgroundTasks

from admin_auth.core.clock import Clock, RandomSource
from admin_auth.core.email import EmailSender, build_verify_url
from admin_auth.core.errors import AuthErrorCode
from admin_auth.core.logging import AuditLogger
from admin_auth.core.security import hash_token
from admin_auth.core.types import MagicLinkToken
from admin_auth.repositories.credential_store import CredentialStore, StoreError
from admin_auth.services.auth_result import AuthResult
from admin_auth.services.rate_limiter import LoginRateLimiter, email_key, ip_key

# 32 bytes = 256 bits of entropy
TOKEN_BYTES = 32

LOGIN_SUCCESS_MESSAGE = "If the email is registered, a magic link has been sent."

_SCOPE = "auth"


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address."""
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    """Syntactic check only; deliverability is not tested."""
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


class TokenIssuer:
    """Creates magic link tokens and dispatches them by email."""

    def __init__(
        self,
        *,
        store: CredentialStore,
        rate_limiter: LoginRateLimiter,
        email_sender: EmailSender,
        clock: Clock,
        rng: RandomSource,
        audit: AuditLogger,
        backend_url: str,
        ttl: timedelta = timedelta(minutes=15),
    ) -> None:
        self._store = store
        self._rate_limiter = rate_limiter
        self._email_sender = email_sender
        self._clock = clock
        self._rng = rng
        self._audit = audit
        self._backend_url = backend_url
        self._ttl = ttl

    async def request_magic_link(
        self,
        email: str,
        ip: str,
        user_agent: str,
        background_tasks: BackgroundTasks | None = None,
    ) -> AuthResult:
        """Issue a magic link for email if it belongs to an active admin.

        Args:
            email: Address as typed by the user.
            ip: Client address of the request.
            user_agent: Client user agent.
            background_tasks: Where to queue delivery so it runs after the
                response. Without one the email is sent before returning.

        Returns:
            AuthResult. Success is uniform for registered, unregistered, and
            inactive addresses; failures are INVALID_EMAIL, RATE_LIMITED, or
            INTERNAL_ERROR.
        """
        normalized = normalize_email(email)
        if not normalized or not is_valid_email(normalized):
            self._audit.info(_SCOPE, "Magic link refused", reason="invalid_email", ip=ip)
            return AuthResult.fail(AuthErrorCode.INVALID_EMAIL)

        if not self._rate_limiter.allow_all([email_key(normalized), ip_key(ip)]):
            self._audit.warning(
                _SCOPE,
                "Magic link refused",
                reason="rate_limited",
                email=normalized,
                ip=ip,
            )
            return AuthResult.fail(AuthErrorCode.RATE_LIMITED)

        # Token generated on every path so the crypto work is the same whether
        # or not the address is registered
        token = self._rng.token_urlsafe(TOKEN_BYTES)

        try:
            user = await self._store.get_user_by_email(normalized)
            if user is None or not user.is_active:
                reason = "user_not_found" if user is None else "user_inactive"
                self._audit.info(
                    _SCOPE,
                    "Magic link not sent",
                    reason=reason,
                    email=normalized,
                    ip=ip,
                )
                return AuthResult.ok(LOGIN_SUCCESS_MESSAGE)

            now = self._clock.now()
            await self._store.save_magic_link_token(
                MagicLinkToken(
                    token_hash=hash_token(token),
                    email=normalized,
                    issued_at=now,
                    expires_at=now + self._ttl,
                    request_ip=ip,
                    request_user_agent=user_agent,
                )
            )
        except StoreError as exc:
            self._audit.error(
                _SCOPE,
                "Magic link issuance failed",
                error=exc,
                email=normalized,
                ip=ip,
            )
            return AuthResult.fail(AuthErrorCode.INTERNAL_ERROR)

        verify_url = build_verify_url(self._backend_url, token)
        if background_tasks is None:
            await self._deliver(normalized, verify_url, user_id=user.id, ip=ip)
        else:
            background_tasks.add_task(
                self._deliver, normalized, verify_url, user_id=user.id, ip=ip
            )
        return AuthResult.ok(LOGIN_SUCCESS_MESSAGE)

    async def _deliver(self, email: str, verify_url: str, *, user_id: str, ip: str) -> None:
        await self._email_sender.send_magic_link(to_email=email, verify_url=verify_url)
        self._audit.info(
            _SCOPE,
            "Magic link sent",
            reason="magic_link_sent",
            email=email,
            user_id=user_id,
            ip=ip,
        )
