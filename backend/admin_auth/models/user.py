"""Admin user model.

Rows are mapped to core.types.User by the SQL credential store; services
never see ORM instances.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from admin_auth.models.base import Base


class UserModel(Base):
    """Administrator account.

    Attributes:
        id: Opaque string identifier (UUID4 text).
        email: Unique normalized email address.
        name: Display name.
        role: Role name expanded through the permission registry.
        status: Lifecycle state; only "active" may sign in.
        created_at: Account creation timestamp.
        last_login: Last successful magic link redemption.
        user_metadata: Free-form profile data (column "metadata").
    """

    __tablename__ = "admin_users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(
        String(320),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(nullable=True)
    # "metadata" is reserved on declarative classes
    user_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )
