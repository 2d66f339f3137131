"""Time and randomness sources.

Services receive these as constructor arguments instead of calling
datetime.now() or secrets directly, so tests can freeze time and script
identifiers.
"""

import secrets
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Supplies the current time (timezone-aware, UTC)."""

    def now(self) -> datetime: ...


class RandomSource(Protocol):
    """Supplies cryptographically strong random values."""

    def token_bytes(self, nbytes: int) -> bytes: ...

    def token_urlsafe(self, nbytes: int) -> str: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class SystemRandom:
    """CSPRNG backed by the `secrets` module."""

    def token_bytes(self, nbytes: int) -> bytes:
        return secrets.token_bytes(nbytes)

    def token_urlsafe(self, nbytes: int) -> str:
        return secrets.token_urlsafe(nbytes)
