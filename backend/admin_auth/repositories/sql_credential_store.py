"""Relational credential store on SQLAlchemy's async ORM.

Works against PostgreSQL (asyncpg) in deployment and SQLite (aiosqlite)
in local development and tests.

Every public operation opens its own session, runs under
asyncio.timeout(store_timeout_seconds), and converts timeouts and driver
errors to StoreError. Nothing is retried here.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from admin_auth.core.database import create_engine, create_session_factory
from admin_auth.core.types import MagicLinkToken, Session, User
from admin_auth.models import Base, MagicLinkTokenModel, SessionModel, UserModel
from admin_auth.repositories.credential_store import CredentialStore, StoreError

logger = structlog.get_logger()


def _aware(value: datetime | None) -> datetime | None:
    """Re-attach UTC to datetimes from backends that drop tzinfo (SQLite)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _to_user(row: UserModel) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=row.role,
        status=row.status,
        created_at=_aware(row.created_at),
        last_login=_aware(row.last_login),
        metadata=dict(row.user_metadata or {}),
    )


def _to_token(row: MagicLinkTokenModel) -> MagicLinkToken:
    return MagicLinkToken(
        token_hash=row.token_hash,
        email=row.email,
        issued_at=_aware(row.issued_at),
        expires_at=_aware(row.expires_at),
        consumed_at=_aware(row.consumed_at),
        request_ip=row.request_ip,
        request_user_agent=row.request_user_agent,
    )


def _to_session(row: SessionModel) -> Session:
    return Session(
        session_id=row.session_id,
        user_id=row.user_id,
        created_at=_aware(row.created_at),
        expires_at=_aware(row.expires_at),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )


class SqlCredentialStore(CredentialStore):
    """CredentialStore backed by admin_users / admin_magic_link_tokens / admin_sessions."""

    def __init__(
        self,
        database_url: str,
        *,
        timeout_seconds: float = 5.0,
        create_tables: bool = False,
        engine: AsyncEngine | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            database_url: SQLAlchemy async URL.
            timeout_seconds: Upper bound for each store operation.
            create_tables: Run metadata.create_all() in initialize()
                (SQLite/dev; production schemas come from Alembic).
            engine: Pre-built engine, mainly for tests.
        """
        self._engine = engine or create_engine(database_url)
        self._session_factory = create_session_factory(self._engine)
        self._timeout = timeout_seconds
        self._create_tables = create_tables

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session bounded by the store timeout, committing on success."""
        try:
            async with asyncio.timeout(self._timeout):
                async with self._session_factory() as db:
                    try:
                        yield db
                        await db.commit()
                    except BaseException:
                        await db.rollback()
                        raise
        except TimeoutError as exc:
            logger.error("Credential store operation timed out", timeout=self._timeout)
            msg = f"Store operation exceeded {self._timeout}s"
            raise StoreError(msg) from exc
        except SQLAlchemyError as exc:
            msg = f"Store operation failed: {type(exc).__name__}"
            raise StoreError(msg) from exc

    async def initialize(self) -> None:
        if not self._create_tables:
            return
        try:
            async with asyncio.timeout(self._timeout):
                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
        except (TimeoutError, SQLAlchemyError) as exc:
            msg = "Failed to create credential store tables"
            raise StoreError(msg) from exc

    async def close(self) -> None:
        await self._engine.dispose()

    # =========================================================================
    # Users
    # =========================================================================

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._session() as db:
            result = await db.execute(select(UserModel).where(UserModel.email == email))
            row = result.scalar_one_or_none()
            return _to_user(row) if row else None

    async def get_user_by_id(self, user_id: str) -> User | None:
        async with self._session() as db:
            row = await db.get(UserModel, user_id)
            return _to_user(row) if row else None

    async def list_users(self) -> list[User]:
        async with self._session() as db:
            result = await db.execute(select(UserModel).order_by(UserModel.created_at))
            return [_to_user(row) for row in result.scalars()]

    async def count_users(self) -> int:
        async with self._session() as db:
            result = await db.execute(select(func.count()).select_from(UserModel))
            return result.scalar_one()

    async def add_user(self, user: User) -> User:
        try:
            async with self._session() as db:
                db.add(
                    UserModel(
                        id=user.id,
                        email=user.email,
                        name=user.name,
                        role=user.role,
                        status=user.status,
                        created_at=user.created_at,
                        last_login=user.last_login,
                        user_metadata=dict(user.metadata),
                    )
                )
        except StoreError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                msg = f"User already exists: {user.id}"
                raise StoreError(msg) from exc.__cause__
            raise
        return user

    async def update_last_login(self, user_id: str, when: datetime) -> None:
        async with self._session() as db:
            await db.execute(
                update(UserModel).where(UserModel.id == user_id).values(last_login=when)
            )

    # =========================================================================
    # Magic link tokens
    # =========================================================================

    async def save_magic_link_token(self, token: MagicLinkToken) -> None:
        async with self._session() as db:
            db.add(
                MagicLinkTokenModel(
                    token_hash=token.token_hash,
                    email=token.email,
                    issued_at=token.issued_at,
                    expires_at=token.expires_at,
                    consumed_at=token.consumed_at,
                    request_ip=token.request_ip,
                    request_user_agent=token.request_user_agent,
                )
            )

    async def get_magic_link_token(self, token_hash: str) -> MagicLinkToken | None:
        async with self._session() as db:
            row = await db.get(MagicLinkTokenModel, token_hash)
            return _to_token(row) if row else None

    async def claim_magic_link_token(self, token_hash: str, now: datetime) -> bool:
        # Single conditional UPDATE: the database serializes concurrent
        # claims, and only one of them sees consumed_at IS NULL.
        async with self._session() as db:
            result = await db.execute(
                update(MagicLinkTokenModel)
                .where(
                    MagicLinkTokenModel.token_hash == token_hash,
                    MagicLinkTokenModel.consumed_at.is_(None),
                )
                .values(consumed_at=now)
            )
            return result.rowcount == 1

    async def count_outstanding_tokens(self, now: datetime) -> int:
        async with self._session() as db:
            result = await db.execute(
                select(func.count())
                .select_from(MagicLinkTokenModel)
                .where(
                    MagicLinkTokenModel.consumed_at.is_(None),
                    MagicLinkTokenModel.expires_at > now,
                )
            )
            return result.scalar_one()

    # =========================================================================
    # Sessions
    # =========================================================================

    async def save_session(self, session: Session) -> None:
        async with self._session() as db:
            db.add(
                SessionModel(
                    session_id=session.session_id,
                    user_id=session.user_id,
                    created_at=session.created_at,
                    expires_at=session.expires_at,
                    ip_address=session.ip_address,
                    user_agent=session.user_agent,
                )
            )

    async def get_session(self, session_id: str) -> Session | None:
        async with self._session() as db:
            row = await db.get(SessionModel, session_id)
            return _to_session(row) if row else None

    async def delete_session(self, session_id: str) -> bool:
        async with self._session() as db:
            result = await db.execute(
                delete(SessionModel).where(SessionModel.session_id == session_id)
            )
            return result.rowcount > 0

    async def count_active_sessions(self, now: datetime) -> int:
        async with self._session() as db:
            result = await db.execute(
                select(func.count())
                .select_from(SessionModel)
                .where(SessionModel.expires_at > now)
            )
            return result.scalar_one()

    # =========================================================================
    # Housekeeping
    # =========================================================================

    async def purge_expired(
        self, now: datetime, token_retention: timedelta = timedelta(0)
    ) -> tuple[int, int]:
        cutoff = now - token_retention
        async with self._session() as db:
            tokens = await db.execute(
                delete(MagicLinkTokenModel).where(MagicLinkTokenModel.expires_at <= cutoff)
            )
            sessions = await db.execute(
                delete(SessionModel).where(SessionModel.expires_at <= now)
            )
            return tokens.rowcount, sessions.rowcount
