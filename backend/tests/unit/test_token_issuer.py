"""Tests for magic link issuance.

Covers email validation, rate limiting, enumeration resistance (unknown
and inactive users get the uniform success response), background delivery,
token persistence, and store failure handling.
"""

import asyncio
import time
from datetime import timedelta

from fastapi import BackgroundTasks
from structlog.testing import capture_logs

from admin_auth.core.errors import AuthErrorCode
from admin_auth.core.security import hash_token
from admin_auth.repositories.credential_store import InMemoryCredentialStore, StoreError
from admin_auth.services.container import ServiceContainer
from admin_auth.services.token_issuer import LOGIN_SUCCESS_MESSAGE, normalize_email

_IP = "203.0.113.7"
_UA = "pytest-agent"


class _FailingStore(InMemoryCredentialStore):
    async def get_user_by_email(self, email):
        raise StoreError("connection refused")


class _SlowEmailSender:
    """EmailSender that takes as long as a slow provider call."""

    delay = 0.5

    def __init__(self) -> None:
        self.sent: list[str] = []

    async def send_magic_link(self, *, to_email: str, verify_url: str) -> None:
        await asyncio.sleep(self.delay)
        self.sent.append(to_email)


class TestRequestMagicLink:
    """Happy path."""

    async def test_sends_link_to_active_user(self, container, email_sender, store):
        result = await container.issuer.request_magic_link("admin@x.com", _IP, _UA)

        assert result.success is True
        assert result.message == LOGIN_SUCCESS_MESSAGE
        assert len(email_sender.sent) == 1
        to_email, url = email_sender.sent[0]
        assert to_email == "admin@x.com"
        assert url.startswith("http://test/api/v1/auth/verify?token=")

        record = await store.get_magic_link_token(hash_token(email_sender.last_token()))
        assert record is not None
        assert record.email == "admin@x.com"
        assert record.request_ip == _IP
        assert record.request_user_agent == _UA
        assert record.consumed_at is None

    async def test_token_expires_after_ttl(self, container, email_sender, store, clock):
        await container.issuer.request_magic_link("admin@x.com", _IP, _UA)

        record = await store.get_magic_link_token(hash_token(email_sender.last_token()))
        assert record.issued_at == clock.now()
        assert record.expires_at == clock.now() + timedelta(minutes=15)

    async def test_result_never_contains_raw_token(self, container, email_sender):
        result = await container.issuer.request_magic_link("admin@x.com", _IP, _UA)

        token = email_sender.last_token()
        assert token not in result.message
        assert result.data == {}

    async def test_only_hash_is_stored(self, container, email_sender, store):
        await container.issuer.request_magic_link("admin@x.com", _IP, _UA)

        assert await store.get_magic_link_token(email_sender.last_token()) is None

    async def test_email_is_normalized(self, container, email_sender):
        result = await container.issuer.request_magic_link("  Admin@X.COM ", _IP, _UA)

        assert result.success is True
        assert email_sender.sent[0][0] == "admin@x.com"

    def test_normalize_email(self):
        assert normalize_email("  Foo@Bar.COM\n") == "foo@bar.com"


class TestEnumerationResistance:
    """Unknown and inactive addresses look identical to registered ones."""

    async def test_unknown_email_gets_uniform_success(self, container, email_sender, store):
        result = await container.issuer.request_magic_link("nobody@x.com", _IP, _UA)

        assert result.success is True
        assert result.message == LOGIN_SUCCESS_MESSAGE
        assert email_sender.sent == []
        assert await store.count_outstanding_tokens(container.clock.now()) == 0

    async def test_suspended_user_gets_uniform_success(self, container, email_sender, store):
        result = await container.issuer.request_magic_link("suspended@x.com", _IP, _UA)

        assert result.success is True
        assert result.message == LOGIN_SUCCESS_MESSAGE
        assert email_sender.sent == []
        assert await store.count_outstanding_tokens(container.clock.now()) == 0

    async def test_audit_log_records_reason_without_token(self, container, email_sender):
        with capture_logs() as logs:
            await container.issuer.request_magic_link("nobody@x.com", _IP, _UA)
            await container.issuer.request_magic_link("admin@x.com", _IP, _UA)

        reasons = [e.get("reason") for e in logs if e.get("scope") == "auth"]
        assert "user_not_found" in reasons
        assert "magic_link_sent" in reasons
        token = email_sender.last_token()
        assert all(token not in str(entry) for entry in logs)


class TestValidation:
    """Malformed addresses are rejected before anything else."""

    async def test_invalid_email(self, container, email_sender):
        for bad in ("", "   ", "not-an-email", "a@", "@x.com", "a b@x.com"):
            result = await container.issuer.request_magic_link(bad, _IP, _UA)
            assert result.success is False
            assert result.error is AuthErrorCode.INVALID_EMAIL
        assert email_sender.sent == []

    async def test_invalid_email_does_not_consume_rate_limit(self, container):
        await container.issuer.request_magic_link("not-an-email", _IP, _UA)

        assert container.rate_limiter.remaining(f"ip:{_IP}") == 5


class TestRateLimiting:
    """Per-email and per-ip sliding windows."""

    async def test_sixth_attempt_for_same_email_is_limited(self, container, email_sender):
        for i in range(5):
            result = await container.issuer.request_magic_link(
                "admin@x.com", f"10.0.0.{i}", _UA
            )
            assert result.success is True

        result = await container.issuer.request_magic_link("admin@x.com", "10.0.0.99", _UA)

        assert result.success is False
        assert result.error is AuthErrorCode.RATE_LIMITED
        assert len(email_sender.sent) == 5

    async def test_limit_resets_after_window(self, container, clock):
        for _ in range(5):
            await container.issuer.request_magic_link("nobody@x.com", _IP, _UA)
        assert (
            await container.issuer.request_magic_link("nobody@x.com", _IP, _UA)
        ).error is AuthErrorCode.RATE_LIMITED

        clock.advance(minutes=15, seconds=1)

        result = await container.issuer.request_magic_link("nobody@x.com", _IP, _UA)
        assert result.success is True

    async def test_same_ip_across_emails_is_limited(self, container):
        for i in range(5):
            await container.issuer.request_magic_link(f"user{i}@x.com", _IP, _UA)

        result = await container.issuer.request_magic_link("admin@x.com", _IP, _UA)

        assert result.error is AuthErrorCode.RATE_LIMITED

    async def test_rate_limited_response_is_same_for_unknown_email(self, container):
        for _ in range(5):
            await container.issuer.request_magic_link("nobody@x.com", _IP, _UA)

        result = await container.issuer.request_magic_link("nobody@x.com", _IP, _UA)

        assert result.error is AuthErrorCode.RATE_LIMITED
        assert result.message == AuthErrorCode.RATE_LIMITED.default_message


class TestStoreFailure:
    """Store errors surface as INTERNAL_ERROR without detail."""

    async def test_store_error_returns_internal_error(
        self, settings, clock, rng, email_sender
    ):
        container = ServiceContainer.build(
            settings,
            store=_FailingStore(),
            clock=clock,
            rng=rng,
            email_sender=email_sender,
        )

        with capture_logs() as logs:
            result = await container.issuer.request_magic_link("admin@x.com", _IP, _UA)

        assert result.success is False
        assert result.error is AuthErrorCode.INTERNAL_ERROR
        assert "connection refused" not in result.message
        assert email_sender.sent == []
        errors = [e for e in logs if e["log_level"] == "error"]
        assert errors and errors[0]["event"] == "Magic link issuance failed"


class TestBackgroundDelivery:
    """With BackgroundTasks, sending happens after the result is returned."""

    async def test_registered_and_unknown_take_the_same_time(
        self, settings, store, clock, rng
    ):
        sender = _SlowEmailSender()
        container = ServiceContainer.build(
            settings, store=store, clock=clock, rng=rng, email_sender=sender
        )
        tasks = BackgroundTasks()

        timings = {}
        for email in ("admin@x.com", "ghost@x.com"):
            started = time.perf_counter()
            result = await container.issuer.request_magic_link(
                email, _IP, _UA, background_tasks=tasks
            )
            timings[email] = time.perf_counter() - started
            assert result.message == LOGIN_SUCCESS_MESSAGE

        assert max(timings.values()) < sender.delay / 2
        assert sender.sent == []

        await tasks()

        assert sender.sent == ["admin@x.com"]

    async def test_nothing_queued_for_unknown_user(self, container):
        tasks = BackgroundTasks()

        await container.issuer.request_magic_link(
            "ghost@x.com", _IP, _UA, background_tasks=tasks
        )

        assert tasks.tasks == []

    async def test_sent_event_logged_after_delivery(self, container, email_sender):
        tasks = BackgroundTasks()
        with capture_logs() as logs:
            await container.issuer.request_magic_link(
                "admin@x.com", _IP, _UA, background_tasks=tasks
            )
            assert not any(e["event"] == "Magic link sent" for e in logs)
            await tasks()

        assert email_sender.sent[0][0] == "admin@x.com"
        assert any(e["event"] == "Magic link sent" for e in logs)
