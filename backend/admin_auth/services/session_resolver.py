"""Session lookup from a presented credential.

Expired, revoked, and forged credentials all resolve to None: callers see
"not authenticated" and nothing more specific. Reads never extend a
session.
"""

from admin_auth.core.clock import Clock
from admin_auth.core.config import Settings
from admin_auth.core.logging import AuditLogger
from admin_auth.core.security import decode_session_credential
from admin_auth.core.types import Session, User
from admin_auth.repositories.credential_store import CredentialStore

_SCOPE = "auth"


class SessionResolver:
    """Resolves session credentials against the credential store.

    Store failures propagate as StoreError; the guard turns them into
    INTERNAL_ERROR.
    """

    def __init__(
        self,
        *,
        store: CredentialStore,
        clock: Clock,
        audit: AuditLogger,
        settings: Settings,
    ) -> None:
        self._store = store
        self._clock = clock
        self._audit = audit
        self._settings = settings

    async def resolve(self, credential: str | None) -> Session | None:
        """Return the live session named by credential.

        Args:
            credential: Encoded session credential, or None.

        Returns:
            The session, or None if the credential is missing, malformed,
            signed with another key, or names an absent/expired session.
        """
        if not credential:
            return None
        session_id = decode_session_credential(credential, self._settings)
        if session_id is None:
            return None
        session = await self._store.get_session(session_id)
        if session is None or session.is_expired(self._clock.now()):
            return None
        return session

    async def resolve_user(self, credential: str | None) -> tuple[User, Session] | None:
        """Resolve the session and its owner.

        Returns:
            (user, session), or None when there is no live session or its
            owner is missing or no longer active.
        """
        session = await self.resolve(credential)
        if session is None:
            return None
        user = await self._store.get_user_by_id(session.user_id)
        if user is None or not user.is_active:
            self._audit.warning(
                _SCOPE,
                "Session owner unavailable",
                session_id=session.session_id,
                user_id=session.user_id,
            )
            return None
        return user, session

    async def logout(self, session_id: str) -> bool:
        """Revoke a session. Idempotent.

        Returns:
            True if a session was deleted, False if it was already gone.
        """
        removed = await self._store.delete_session(session_id)
        self._audit.info(_SCOPE, "Session revoked", session_id=session_id, removed=removed)
        return removed
