"""Server-side session model.

Logout deletes the row; expiry is a time comparison against expires_at.
"""

from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from admin_auth.models.base import Base


class SessionModel(Base):
    """Authenticated admin session.

    Attributes:
        session_id: Opaque session key named by the session credential.
        user_id: Owning admin user.
        created_at: Session creation time.
        expires_at: Session expiry.
        ip_address: Client address at sign-in (audit only).
        user_agent: Client user agent at sign-in (audit only).
    """

    __tablename__ = "admin_sessions"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("admin_users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
