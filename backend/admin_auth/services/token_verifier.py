"""Magic link redemption and session creation.

verify_magic_link() checks, in order:
1. Token known (by SHA-256 hash)            -> else INVALID_TOKEN
2. Not yet consumed                         -> else ALREADY_USED
3. now < expires_at                         -> else EXPIRED_TOKEN
4. Same client address (magic_link_bind_ip) -> else INVALID_TOKEN
5. Atomic claim in the store                -> loser gets ALREADY_USED
6. Owning user exists and is active         -> else INVALID_TOKEN

Steps 1-4 are advisory reads; only step 5 decides who redeems the token,
so concurrent redemptions mint at most one session.
"""

from datetime import timedelta

from admin_auth.core.clock import Clock, RandomSource
from admin_auth.core.config import Settings
from admin_auth.core.errors import AuthErrorCode
from admin_auth.core.logging import AuditLogger
from admin_auth.core.security import create_session_credential, hash_token
from admin_auth.core.types import Session
from admin_auth.repositories.credential_store import CredentialStore, StoreError
from admin_auth.services.auth_result import AuthResult

SESSION_ID_BYTES = 32

_SCOPE = "auth"


class TokenVerifier:
    """Redeems magic link tokens into sessions."""

    def __init__(
        self,
        *,
        store: CredentialStore,
        clock: Clock,
        rng: RandomSource,
        audit: AuditLogger,
        settings: Settings,
    ) -> None:
        self._store = store
        self._clock = clock
        self._rng = rng
        self._audit = audit
        self._settings = settings
        self._session_ttl = timedelta(hours=settings.session_ttl_hours)

    async def verify_magic_link(
        self,
        token: str,
        ip: str,
        user_agent: str,
    ) -> AuthResult:
        """Redeem token and open a session.

        Args:
            token: Plain token from the magic link.
            ip: Client address of the redeeming request.
            user_agent: Client user agent of the redeeming request.

        Returns:
            AuthResult whose data holds "token" (the session credential),
            "user", and "session" on success.
        """
        if not token:
            return AuthResult.fail(AuthErrorCode.INVALID_TOKEN)

        token_hash = hash_token(token)
        try:
            record = await self._store.get_magic_link_token(token_hash)
            now = self._clock.now()

            if record is None:
                self._audit.warning(_SCOPE, "Magic link rejected", reason="unknown_token", ip=ip)
                return AuthResult.fail(AuthErrorCode.INVALID_TOKEN)
            if record.is_consumed:
                self._audit.warning(
                    _SCOPE,
                    "Magic link rejected",
                    reason="already_used",
                    email=record.email,
                    ip=ip,
                )
                return AuthResult.fail(AuthErrorCode.ALREADY_USED)
            if record.is_expired(now):
                self._audit.info(
                    _SCOPE,
                    "Magic link rejected",
                    reason="expired",
                    email=record.email,
                    ip=ip,
                )
                return AuthResult.fail(AuthErrorCode.EXPIRED_TOKEN)
            if self._settings.magic_link_bind_ip and record.request_ip != ip:
                self._audit.warning(
                    _SCOPE,
                    "Magic link rejected",
                    reason="ip_mismatch",
                    email=record.email,
                    ip=ip,
                    issued_ip=record.request_ip,
                )
                return AuthResult.fail(AuthErrorCode.INVALID_TOKEN)

            if not await self._store.claim_magic_link_token(token_hash, now):
                self._audit.warning(
                    _SCOPE,
                    "Magic link rejected",
                    reason="claim_lost",
                    email=record.email,
                    ip=ip,
                )
                return AuthResult.fail(AuthErrorCode.ALREADY_USED)

            user = await self._store.get_user_by_email(record.email)
            if user is None or not user.is_active:
                self._audit.warning(
                    _SCOPE,
                    "Magic link rejected",
                    reason="user_unavailable",
                    email=record.email,
                    ip=ip,
                )
                return AuthResult.fail(AuthErrorCode.INVALID_TOKEN)

            # last_login first: a failure here must not leave a session behind
            await self._store.update_last_login(user.id, now)
            user.last_login = now
            session = Session(
                session_id=self._new_session_id(),
                user_id=user.id,
                created_at=now,
                expires_at=now + self._session_ttl,
                ip_address=ip,
                user_agent=user_agent,
            )
            await self._store.save_session(session)
        except StoreError as exc:
            self._audit.error(_SCOPE, "Magic link verification failed", error=exc, ip=ip)
            return AuthResult.fail(AuthErrorCode.INTERNAL_ERROR)

        credential = create_session_credential(
            user_id=user.id,
            session_id=session.session_id,
            issued_at=session.created_at,
            expires_at=session.expires_at,
            settings=self._settings,
        )
        self._audit.info(
            _SCOPE,
            "Session created",
            user_id=user.id,
            session_id=session.session_id,
            ip=ip,
        )
        return AuthResult.ok(
            "Signed in successfully.",
            data={"token": credential, "user": user, "session": session},
        )

    def _new_session_id(self) -> str:
        return self._rng.token_bytes(SESSION_ID_BYTES).hex()
