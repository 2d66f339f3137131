"""Shared test fixtures.

Every service is wired through ServiceContainer.build() with fakes for
the collaborators that touch the outside world:

- FrozenClock: manually advanced time
- CountingRandom: deterministic, unique tokens and session ids
- RecordingEmailSender: captures magic links instead of sending them

The login rate limiter's in-memory storage (limits) reads time.time();
limits_follow_clock points it at the FrozenClock so tests move both together.

API tests drive the app with httpx.AsyncClient over ASGITransport; the
container is attached up front so the lifespan does not need to run.
"""

import os

# Must be set before admin_auth.core.config builds the settings singleton
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from urllib.parse import parse_qs, urlsplit  # noqa: E402

import limits.storage.memory  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from pydantic import SecretStr  # noqa: E402

from admin_auth.core.config import Settings  # noqa: E402
from admin_auth.core.logging import AuditLogger  # noqa: E402
from admin_auth.core.rate_limiting import limiter  # noqa: E402
from admin_auth.core.types import User, UserRole, UserStatus  # noqa: E402
from admin_auth.main import create_app  # noqa: E402
from admin_auth.repositories.credential_store import InMemoryCredentialStore  # noqa: E402
from admin_auth.services.container import ServiceContainer  # noqa: E402

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105

ADMIN_EMAIL = "admin@x.com"
EDITOR_EMAIL = "editor@x.com"
VIEWER_EMAIL = "viewer@x.com"
SUSPENDED_EMAIL = "suspended@x.com"


# =============================================================================
# Fakes
# =============================================================================


class FrozenClock:
    """Clock that only moves when told to.

    Starts at the current wall-clock second so signed credentials minted
    against it are not already past their exp claim.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime.now(UTC).replace(microsecond=0)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class CountingRandom:
    """Deterministic RandomSource producing unique values."""

    def __init__(self) -> None:
        self.counter = 0
        self.tokens: list[str] = []

    def token_bytes(self, nbytes: int) -> bytes:
        self.counter += 1
        return self.counter.to_bytes(nbytes, "big")

    def token_urlsafe(self, nbytes: int) -> str:
        self.counter += 1
        token = f"test-token-{self.counter:04d}"
        self.tokens.append(token)
        return token


class RecordingEmailSender:
    """EmailSender that records every magic link."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send_magic_link(self, *, to_email: str, verify_url: str) -> None:
        self.sent.append((to_email, verify_url))

    def last_token(self) -> str:
        """Plain token carried by the most recent link."""
        _, url = self.sent[-1]
        return parse_qs(urlsplit(url).query)["token"][0]


# =============================================================================
# Core fixtures
# =============================================================================


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values = {
        "environment": "test",
        "auth_secret": SecretStr(TEST_AUTH_SECRET),
        # httpx only replays Secure cookies over https
        "auth_cookie_secure": False,
        "backend_url": "http://test",
        "rate_limit_enabled": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def settings_factory():
    """Build Settings with overrides, e.g. settings_factory(magic_link_bind_ip=True)."""
    return make_settings


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture(autouse=True)
def limits_follow_clock(monkeypatch, clock: FrozenClock) -> None:
    """Drive the limits in-memory storage from the test clock."""
    monkeypatch.setattr(
        limits.storage.memory,
        "time",
        SimpleNamespace(time=lambda: clock.now().timestamp()),
    )


@pytest.fixture
def rng() -> CountingRandom:
    return CountingRandom()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


def make_user(
    email: str,
    role: UserRole,
    status: UserStatus = UserStatus.ACTIVE,
    *,
    created_at: datetime,
) -> User:
    return User(
        id=f"user-{email.split('@')[0]}",
        email=email,
        name=email.split("@")[0].title(),
        role=role.value,
        status=status.value,
        created_at=created_at,
    )


@pytest.fixture
def users(clock: FrozenClock) -> dict[str, User]:
    """One user per role plus a suspended admin."""
    created = clock.now() - timedelta(days=30)
    return {
        "admin": make_user(ADMIN_EMAIL, UserRole.ADMIN, created_at=created),
        "editor": make_user(EDITOR_EMAIL, UserRole.EDITOR, created_at=created),
        "viewer": make_user(VIEWER_EMAIL, UserRole.VIEWER, created_at=created),
        "suspended": make_user(
            SUSPENDED_EMAIL, UserRole.ADMIN, UserStatus.SUSPENDED, created_at=created
        ),
    }


@pytest_asyncio.fixture
async def store(users: dict[str, User]) -> InMemoryCredentialStore:
    store = InMemoryCredentialStore()
    for user in users.values():
        await store.add_user(user)
    return store


@pytest.fixture
def container(
    settings: Settings,
    store: InMemoryCredentialStore,
    clock: FrozenClock,
    rng: CountingRandom,
    email_sender: RecordingEmailSender,
) -> ServiceContainer:
    return ServiceContainer.build(
        settings,
        store=store,
        clock=clock,
        rng=rng,
        email_sender=email_sender,
        audit=AuditLogger(),
    )


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_transport_limiter():
    """Clear slowapi counters between tests and leave the limiter disabled."""
    limiter.reset()
    yield
    limiter.reset()
    limiter.enabled = False


@pytest_asyncio.fixture
async def client(container: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against a fresh app bound to the test container."""
    app = create_app(container=container)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def login_as(
    client: AsyncClient,
    email_sender: RecordingEmailSender,
):
    """Sign in through the real login + verify endpoints.

    Returns a coroutine function: await login_as(email) -> verify response.
    The client's cookie jar holds the session cookie afterwards.
    """

    async def _login(email: str):
        response = await client.post("/api/v1/auth/login", json={"email": email})
        assert response.status_code == 200
        token = email_sender.last_token()
        return await client.get("/api/v1/auth/verify", params={"token": token})

    return _login
