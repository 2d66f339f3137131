"""Create admin auth tables: users, magic link tokens, sessions.

Revision ID: 001_admin_auth_tables
Revises:
Create Date: 2026-10-17

Tokens are stored by SHA-256 hash only. consumed_at is set exactly once by
the conditional UPDATE in SqlCredentialStore.claim_magic_link_token().
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_admin_auth_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "admin_users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'suspended', 'pending')",
            name="ck_admin_users_status",
        ),
    )
    op.create_index("ix_admin_users_email", "admin_users", ["email"], unique=True)

    op.create_table(
        "admin_magic_link_tokens",
        sa.Column("token_hash", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("request_ip", sa.String(64), nullable=True),
        sa.Column("request_user_agent", sa.String(512), nullable=True),
    )
    op.create_index(
        "ix_admin_magic_link_tokens_email", "admin_magic_link_tokens", ["email"]
    )
    op.create_index(
        "ix_admin_magic_link_tokens_expires_at",
        "admin_magic_link_tokens",
        ["expires_at"],
    )

    op.create_table(
        "admin_sessions",
        sa.Column("session_id", sa.String(64), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("admin_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
    )
    op.create_index("ix_admin_sessions_user_id", "admin_sessions", ["user_id"])
    op.create_index("ix_admin_sessions_expires_at", "admin_sessions", ["expires_at"])


def downgrade() -> None:
    op.drop_table("admin_sessions")
    op.drop_table("admin_magic_link_tokens")
    op.drop_table("admin_users")
