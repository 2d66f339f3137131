"""User directory file schema (USERS_FILE).

    {"users": [{"email": "ana@metrica-dip.com", "name": "Ana", "role": "editor"}]}

Only the fields an operator needs to seed an account are accepted; ids and
timestamps are assigned when the user is inserted unless provided.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from admin_auth.core.types import UserRole, UserStatus


class UserSeed(BaseModel):
    """One administrator entry in the users file."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(default=None, min_length=1, max_length=64)
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    role: UserRole = UserRole.VIEWER
    status: UserStatus = UserStatus.ACTIVE
    created_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UsersFile(BaseModel):
    """Top-level users file document."""

    model_config = ConfigDict(extra="forbid")

    users: list[UserSeed] = Field(default_factory=list)
