"""Domain records shared by stores, services, and routes.

Stores (in-memory or SQL) hand these out; services never see ORM rows.
Token and session records are immutable snapshots: state changes go
through the store, which returns fresh snapshots.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class UserRole(str, Enum):
    """Built-in administrator roles."""

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class UserStatus(str, Enum):
    """Account lifecycle states. Only ACTIVE users may sign in."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING = "pending"


@dataclass
class User:
    """An administrator of the site.

    Attributes:
        id: Opaque user identifier.
        email: Normalized (trimmed, lowercased) email address.
        name: Display name.
        role: Role name, expanded through the permission registry.
        status: Lifecycle state (see UserStatus).
        created_at: When the account was created.
        last_login: Last successful magic link redemption, if any.
        metadata: Free-form profile data (avatar, preferences).
    """

    id: str
    email: str
    name: str
    role: str
    status: str
    created_at: datetime
    last_login: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value


@dataclass(frozen=True)
class MagicLinkToken:
    """A single-use sign-in credential.

    Only the SHA-256 hash of the token is kept; the plain value exists in
    the email and nowhere else.

    Transitions: Issued -> Consumed (consumed_at set, terminal) or
    Issued -> Expired (implicit, by time comparison; never written).
    """

    token_hash: str
    email: str
    issued_at: datetime
    expires_at: datetime
    consumed_at: datetime | None = None
    request_ip: str | None = None
    request_user_agent: str | None = None

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class Session:
    """A server-side authenticated session.

    Valid iff now < expires_at and the record still exists (logout deletes
    it). ip_address/user_agent are audit data, not re-checked per request.
    """

    session_id: str
    user_id: str
    created_at: datetime
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class Permission:
    """A (resource, action) grant.

    Equality and hashing ignore the description, so set membership is an
    exact (resource, action) match.
    """

    resource: str
    action: str
    description: str = field(default="", compare=False)
