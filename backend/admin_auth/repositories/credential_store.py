"""Credential store contract and the in-memory implementation.

The store owns users, magic link tokens, and sessions. Services depend
only on CredentialStore, so the backend is picked at startup:

- InMemoryCredentialStore: process-local dicts (development, tests,
  single-instance deployments).
- SqlCredentialStore (sql_credential_store.py): SQLAlchemy async engine.

Atomicity: claim_magic_link_token() is the single check-and-set that
moves a token from Issued to Consumed. Callers never implement it as a
read followed by a conditional write.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta

from admin_auth.core.types import MagicLinkToken, Session, User


class StoreError(Exception):
    """Raised when the backing store fails or exceeds its time budget.

    Services catch this at their boundary and report INTERNAL_ERROR.
    """


class CredentialStore(ABC):
    """Persistence contract for users, magic link tokens, and sessions.

    All methods are async. Implementations raise StoreError for backend
    failures and return None/False for "not found".
    """

    async def initialize(self) -> None:
        """Prepare the backend (create tables, open pools). Default: no-op."""

    async def close(self) -> None:
        """Release backend resources. Default: no-op."""

    # =========================================================================
    # Users
    # =========================================================================

    @abstractmethod
    async def get_user_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> User | None: ...

    @abstractmethod
    async def list_users(self) -> list[User]: ...

    @abstractmethod
    async def count_users(self) -> int: ...

    @abstractmethod
    async def add_user(self, user: User) -> User:
        """Insert a user.

        Raises:
            StoreError: If the id or email is already taken.
        """

    @abstractmethod
    async def update_last_login(self, user_id: str, when: datetime) -> None: ...

    # =========================================================================
    # Magic link tokens
    # =========================================================================

    @abstractmethod
    async def save_magic_link_token(self, token: MagicLinkToken) -> None: ...

    @abstractmethod
    async def get_magic_link_token(self, token_hash: str) -> MagicLinkToken | None: ...

    @abstractmethod
    async def claim_magic_link_token(self, token_hash: str, now: datetime) -> bool:
        """Atomically mark an unconsumed token as consumed.

        Args:
            token_hash: Stored hash of the token.
            now: Consumption time to record.

        Returns:
            True for exactly one caller per token; False if the token is
            unknown or was already consumed.
        """

    @abstractmethod
    async def count_outstanding_tokens(self, now: datetime) -> int:
        """Count tokens that are neither consumed nor expired."""

    # =========================================================================
    # Sessions
    # =========================================================================

    @abstractmethod
    async def save_session(self, session: Session) -> None: ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Session | None: ...

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Delete a session. Returns whether a record was removed."""

    @abstractmethod
    async def count_active_sessions(self, now: datetime) -> int: ...

    # =========================================================================
    # Housekeeping
    # =========================================================================

    @abstractmethod
    async def purge_expired(
        self, now: datetime, token_retention: timedelta = timedelta(0)
    ) -> tuple[int, int]:
        """Delete expired sessions and long-expired tokens.

        Args:
            now: Current time.
            token_retention: How long a token (consumed or not) is kept past
                its expiry before it is deleted.

        Returns:
            (tokens_removed, sessions_removed)
        """


class InMemoryCredentialStore(CredentialStore):
    """Dict-backed store guarded by a single lock.

    The lock makes every operation, and in particular the token claim,
    atomic even when the store is shared across threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._user_ids_by_email: dict[str, str] = {}
        self._tokens: dict[str, MagicLinkToken] = {}
        self._sessions: dict[str, Session] = {}

    async def get_user_by_email(self, email: str) -> User | None:
        with self._lock:
            user_id = self._user_ids_by_email.get(email)
            return self._users.get(user_id) if user_id else None

    async def get_user_by_id(self, user_id: str) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    async def list_users(self) -> list[User]:
        with self._lock:
            return sorted(self._users.values(), key=lambda u: u.created_at)

    async def count_users(self) -> int:
        with self._lock:
            return len(self._users)

    async def add_user(self, user: User) -> User:
        with self._lock:
            if user.id in self._users or user.email in self._user_ids_by_email:
                msg = f"User already exists: {user.id}"
                raise StoreError(msg)
            self._users[user.id] = user
            self._user_ids_by_email[user.email] = user.id
            return user

    async def update_last_login(self, user_id: str, when: datetime) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is not None:
                user.last_login = when

    async def save_magic_link_token(self, token: MagicLinkToken) -> None:
        with self._lock:
            self._tokens[token.token_hash] = token

    async def get_magic_link_token(self, token_hash: str) -> MagicLinkToken | None:
        with self._lock:
            return self._tokens.get(token_hash)

    async def claim_magic_link_token(self, token_hash: str, now: datetime) -> bool:
        with self._lock:
            token = self._tokens.get(token_hash)
            if token is None or token.consumed_at is not None:
                return False
            self._tokens[token_hash] = replace(token, consumed_at=now)
            return True

    async def count_outstanding_tokens(self, now: datetime) -> int:
        with self._lock:
            return sum(
                1
                for t in self._tokens.values()
                if not t.is_consumed and not t.is_expired(now)
            )

    async def save_session(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    async def get_session(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    async def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    async def count_active_sessions(self, now: datetime) -> int:
        with self._lock:
            return sum(1 for s in self._sessions.values() if not s.is_expired(now))

    async def purge_expired(
        self, now: datetime, token_retention: timedelta = timedelta(0)
    ) -> tuple[int, int]:
        cutoff = now - token_retention
        with self._lock:
            stale_tokens = [h for h, t in self._tokens.items() if t.is_expired(cutoff)]
            for token_hash in stale_tokens:
                del self._tokens[token_hash]
            stale_sessions = [
                sid for sid, s in self._sessions.items() if s.is_expired(now)
            ]
            for session_id in stale_sessions:
                del self._sessions[session_id]
            return len(stale_tokens), len(stale_sessions)
