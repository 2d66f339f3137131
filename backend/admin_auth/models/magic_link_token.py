"""Magic link token model.

Single-use, time-limited. Keyed by the SHA-256 hash of the token; the
plain value is never persisted. consumed_at is written exactly once by the
conditional UPDATE in SqlCredentialStore.claim_magic_link_token().
"""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from admin_auth.models.base import Base


class MagicLinkTokenModel(Base):
    """Stored magic link token.

    Attributes:
        token_hash: SHA-256 hex digest of the token (primary key).
        email: Normalized email the link was requested for.
        issued_at: Issuance time.
        expires_at: Expiry time.
        consumed_at: Redemption time. NULL = unused.
        request_ip: Client address of the login request.
        request_user_agent: User agent of the login request.
    """

    __tablename__ = "admin_magic_link_tokens"

    token_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    issued_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    consumed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    request_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    request_user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
