"""Application configuration loaded from environment variables.

Settings for the credential store, session credentials, magic links,
rate limiting, and outbound email. Uses pydantic-settings for validation
and .env file support.
"""

import logging
import secrets
from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "metrica_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # CORS (Security)
    # CRITICAL: Never set to ["*"] -- the session cookie is a credential
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Credential store backend
    # "memory": process-local dicts (single instance, development, tests)
    # "sql": SQLAlchemy async engine against database_url
    credential_store: Literal["memory", "sql"] = "memory"
    # Every store operation is bounded by this timeout; no automatic retry
    store_timeout_seconds: float = 5.0

    # Database (only used when credential_store == "sql")
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "metrica_admin"
    database_user: str = "metrica_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # Full SQLAlchemy URL; wins over the individual parts when set
    # (e.g. "sqlite+aiosqlite:///./admin_auth.db" for local development)
    database_url_override: str = ""

    # Session credential (signed, stored client-side in an httpOnly cookie)
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "metrica-admin"
    auth_audience: str = "metrica-admin"
    auth_cookie_name: str = "admin_session"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "strict"
    auth_cookie_domain: str = ""

    # Magic links and sessions
    magic_link_ttl_minutes: int = 15
    session_ttl_hours: int = 24
    # Consumed and expired token rows are kept this long past expiry so late
    # redemptions still get EXPIRED_TOKEN / ALREADY_USED instead of INVALID_TOKEN
    magic_link_retention_hours: int = 24
    # Reject redemption from a different address than the one that asked
    magic_link_bind_ip: bool = False

    # Rate Limiting (Security)
    # Login attempts: sliding window, keyed independently by email and by IP
    login_rate_limit_attempts: int = 5
    login_rate_limit_window_minutes: int = 15
    # Transport-level throttle on token redemption, per client IP
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    verify_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True  # Disable for testing
    # limits storage URI shared by both limiters (e.g. "redis://localhost:6379"
    # for multi-instance deployments)
    rate_limit_storage_uri: str = "memory://"

    # Proxies whose X-Forwarded-For / X-Forwarded-Proto headers are honored
    # (comma-separated IPs or CIDRs, "*" for any). Empty: use the socket peer.
    forwarded_allow_ips: str = ""

    # Email
    email_from: str = "noreply@metrica-dip.com"
    resend_api_key: SecretStr = SecretStr("")

    # Backend URL (magic links point straight at the verify endpoint)
    backend_url: str = "http://localhost:8000"

    # User directory bootstrap
    default_admin_email: str = ""
    users_file: str = ""

    # Permission matrix override (JSON); empty means built-in defaults
    permissions_file: str = ""

    # Housekeeping
    cleanup_interval_seconds: int = 300

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return self.database_url.replace("+asyncpg", "").replace("+aiosqlite", "")

    @property
    def session_cookie_max_age(self) -> int:
        """Cookie lifetime in seconds, aligned with the session TTL."""
        return self.session_ttl_hours * 3600

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate security requirements.

        Checks:
        - SameSite=None requires the Secure flag (browser requirement)
        - CORS must not use a wildcard origin (incompatible with credentials)
        - TTLs and rate limit values must be positive
        - AUTH_SECRET must be set and >= 32 chars in production; development
          gets a random per-process secret with a warning
        - Database password must not be the default in production when the
          SQL store is selected
        """
        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "The admin session cookie is incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        for name in (
            "magic_link_ttl_minutes",
            "session_ttl_hours",
            "magic_link_retention_hours",
            "login_rate_limit_attempts",
            "login_rate_limit_window_minutes",
            "cleanup_interval_seconds",
        ):
            if getattr(self, name) <= 0:
                msg = f"{name.upper()} must be positive. Got: {getattr(self, name)}"
                raise ValueError(msg)
        if self.store_timeout_seconds <= 0:
            msg = f"STORE_TIMEOUT_SECONDS must be positive. Got: {self.store_timeout_seconds}"
            raise ValueError(msg)

        secret_value = self.auth_secret.get_secret_value()
        if self.environment == "production":
            if not secret_value:
                msg = (
                    "AUTH_SECRET must be set in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if (
                self.credential_store == "sql"
                and not self.database_url_override
                and self.database_password == _INSECURE_DEFAULT_PASSWORD
            ):
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)
        elif not secret_value:
            self.auth_secret = SecretStr(secrets.token_hex(32))
            secret_value = self.auth_secret.get_secret_value()
            logger.warning(
                "Using auto-generated AUTH_SECRET; sessions will not survive a restart"
            )

        if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
            msg = (
                f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                "characters for adequate security."
            )
            raise ValueError(msg)

        return self


settings = Settings()
