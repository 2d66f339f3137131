"""Auth API request/response schemas.

Response models are built from the domain records in core.types with
from_domain() helpers, so routes never hand dataclasses to FastAPI
directly. Session responses omit the session id: it is only ever carried
inside the signed credential.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from admin_auth.core.types import Permission, Session, User


class LoginRequest(BaseModel):
    """Request body for POST /auth/login.

    The email is a plain string here; the token issuer performs the
    format check so that a malformed address yields INVALID_EMAIL rather
    than a generic validation error.
    """

    model_config = ConfigDict(extra="forbid")

    email: str = Field(min_length=1, max_length=320)


class UserResponse(BaseModel):
    """Public view of an admin user."""

    id: str
    email: str
    name: str
    role: str
    status: str
    created_at: datetime
    last_login: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            status=user.status,
            created_at=user.created_at,
            last_login=user.last_login,
            metadata=dict(user.metadata),
        )


class SessionResponse(BaseModel):
    """Session metadata visible to its owner."""

    created_at: datetime
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_domain(cls, session: Session) -> "SessionResponse":
        return cls(
            created_at=session.created_at,
            expires_at=session.expires_at,
            ip_address=session.ip_address,
            user_agent=session.user_agent,
        )


class PermissionResponse(BaseModel):
    """A granted (resource, action) pair."""

    resource: str
    action: str
    description: str = ""

    @classmethod
    def from_domain(cls, permission: Permission) -> "PermissionResponse":
        return cls(
            resource=permission.resource,
            action=permission.action,
            description=permission.description,
        )


class ResourceResponse(BaseModel):
    """Catalog entry for a resource."""

    name: str
    description: str
    actions: dict[str, str]


class VerifyData(BaseModel):
    """Payload of a successful GET /auth/verify."""

    user: UserResponse
    session: SessionResponse


class MeData(BaseModel):
    """Payload of GET /auth/me."""

    user: UserResponse
    session: SessionResponse
    permissions: list[PermissionResponse]
    resources: dict[str, ResourceResponse]


class AuthStatsResponse(BaseModel):
    """Payload of GET /admin/auth/stats."""

    users: int
    active_sessions: int
    outstanding_tokens: int
    rate_limited_keys: int


class RoleResponse(BaseModel):
    """Role with its explicit grants."""

    description: str
    permissions: list[dict[str, str]]
