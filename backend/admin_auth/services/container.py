"""Explicit wiring of the authentication services.

One ServiceContainer is built at startup (or by a test) and stored on
app.state. Every collaborator (store, clock, randomness, email sender) is
passed in or derived from Settings; nothing reaches for module-level
singletons at request time.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from limits.storage import storage_from_string

from admin_auth.core.clock import Clock, RandomSource, SystemClock, SystemRandom
from admin_auth.core.config import Settings
from admin_auth.core.email import EmailSender, build_email_sender
from admin_auth.core.logging import AuditLogger
from admin_auth.repositories.credential_store import (
    CredentialStore,
    InMemoryCredentialStore,
    StoreError,
)
from admin_auth.services.auth_guard import AuthGuard
from admin_auth.services.permission_registry import (
    PermissionRegistry,
    default_matrix,
    load_matrix,
)
from admin_auth.services.rate_limiter import LoginRateLimiter, RateLimitPolicy
from admin_auth.services.session_resolver import SessionResolver
from admin_auth.services.token_issuer import TokenIssuer
from admin_auth.services.token_verifier import TokenVerifier
from admin_auth.services.user_directory import (
    ensure_default_admin,
    load_users_file,
    seed_users,
)

_SCOPE = "auth"


def build_store(settings: Settings) -> CredentialStore:
    """Instantiate the configured credential store backend."""
    if settings.credential_store == "sql":
        # Imported lazily so the in-memory deployment never loads SQLAlchemy
        from admin_auth.repositories.sql_credential_store import SqlCredentialStore

        return SqlCredentialStore(
            settings.database_url,
            timeout_seconds=settings.store_timeout_seconds,
            create_tables=settings.database_url.startswith("sqlite"),
        )
    return InMemoryCredentialStore()


@dataclass
class ServiceContainer:
    """All authentication services for one process."""

    settings: Settings
    store: CredentialStore
    clock: Clock
    audit: AuditLogger
    rate_limiter: LoginRateLimiter
    registry: PermissionRegistry
    issuer: TokenIssuer
    verifier: TokenVerifier
    resolver: SessionResolver
    guard: AuthGuard

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        store: CredentialStore | None = None,
        clock: Clock | None = None,
        rng: RandomSource | None = None,
        email_sender: EmailSender | None = None,
        audit: AuditLogger | None = None,
    ) -> "ServiceContainer":
        """Construct and wire every service.

        Args:
            settings: Application settings.
            store: Credential store (default: per settings.credential_store).
            clock: Time source (default: SystemClock).
            rng: Randomness source (default: SystemRandom).
            email_sender: Outbound email (default: per settings).
            audit: Audit logger (default: structlog-backed AuditLogger).

        Returns:
            A ready-to-use container. Call bootstrap() before serving.
        """
        store = store or build_store(settings)
        clock = clock or SystemClock()
        rng = rng or SystemRandom()
        email_sender = email_sender or build_email_sender(settings)
        audit = audit or AuditLogger()

        matrix = (
            load_matrix(settings.permissions_file)
            if settings.permissions_file
            else default_matrix()
        )
        registry = PermissionRegistry(matrix, audit=audit)
        rate_limiter = LoginRateLimiter(
            RateLimitPolicy(
                max_attempts=settings.login_rate_limit_attempts,
                window_minutes=settings.login_rate_limit_window_minutes,
            ),
            storage=storage_from_string(settings.rate_limit_storage_uri),
        )
        resolver = SessionResolver(store=store, clock=clock, audit=audit, settings=settings)

        return cls(
            settings=settings,
            store=store,
            clock=clock,
            audit=audit,
            rate_limiter=rate_limiter,
            registry=registry,
            issuer=TokenIssuer(
                store=store,
                rate_limiter=rate_limiter,
                email_sender=email_sender,
                clock=clock,
                rng=rng,
                audit=audit,
                backend_url=settings.backend_url,
                ttl=timedelta(minutes=settings.magic_link_ttl_minutes),
            ),
            verifier=TokenVerifier(
                store=store, clock=clock, rng=rng, audit=audit, settings=settings
            ),
            resolver=resolver,
            guard=AuthGuard(resolver=resolver, registry=registry, audit=audit),
        )

    async def bootstrap(self) -> None:
        """Prepare the store and populate the user directory."""
        await self.store.initialize()
        if self.settings.users_file:
            seeds = load_users_file(self.settings.users_file)
            await seed_users(self.store, seeds, clock=self.clock, audit=self.audit)
        await ensure_default_admin(
            self.store,
            self.settings.default_admin_email,
            clock=self.clock,
            audit=self.audit,
        )

    async def cleanup(self) -> dict[str, int]:
        """Purge expired sessions, old tokens, and stale rate-limit windows.

        Tokens are kept for magic_link_retention_hours past expiry so a late
        redemption is still told EXPIRED_TOKEN or ALREADY_USED.

        Returns:
            Counts of removed tokens, sessions, and rate-limit keys.
        """
        tokens, sessions = await self.store.purge_expired(
            self.clock.now(),
            token_retention=timedelta(hours=self.settings.magic_link_retention_hours),
        )
        keys = self.rate_limiter.purge()
        if tokens or sessions or keys:
            self.audit.info(
                _SCOPE,
                "Expired credentials purged",
                tokens=tokens,
                sessions=sessions,
                rate_limit_keys=keys,
            )
        return {"tokens": tokens, "sessions": sessions, "rate_limit_keys": keys}

    async def run_cleanup_loop(self) -> None:
        """Run cleanup() every cleanup_interval_seconds until cancelled.

        Store failures are logged and the loop keeps going.
        """
        while True:
            await asyncio.sleep(self.settings.cleanup_interval_seconds)
            try:
                await self.cleanup()
            except StoreError as exc:
                self.audit.error(_SCOPE, "Credential cleanup failed", error=exc)

    async def get_auth_stats(self) -> dict[str, Any]:
        """Directory and credential counters for the admin dashboard."""
        now = self.clock.now()
        return {
            "users": await self.store.count_users(),
            "active_sessions": await self.store.count_active_sessions(now),
            "outstanding_tokens": await self.store.count_outstanding_tokens(now),
            "rate_limited_keys": self.rate_limiter.tracked_keys(),
        }

    async def close(self) -> None:
        await self.store.close()
