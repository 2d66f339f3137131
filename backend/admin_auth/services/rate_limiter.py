"""Moving-window rate limiter for login attempts.

Built on the limits library (the engine behind slowapi) with the
MovingWindowRateLimiter strategy: an attempt is accepted when fewer than
max_attempts accepted attempts fall inside the trailing window.

Keys are namespaced strings ("email:<address>", "ip:<address>"). Storage
is in-memory by default; point RATE_LIMIT_STORAGE_URI at Redis to share
windows across instances.

The limiter never raises. Refused attempts are not recorded, so a caller
that stops trying regains access one window after its oldest accepted
attempt.
"""

import threading
from collections.abc import Iterable
from dataclasses import dataclass

from limits import RateLimitItem, RateLimitItemPerMinute
from limits.storage import Storage, storage_from_string
from limits.strategies import MovingWindowRateLimiter


@dataclass(frozen=True)
class RateLimitPolicy:
    """Attempt threshold per moving window.

    Attributes:
        max_attempts: Accepted attempts allowed inside one window.
        window_minutes: Length of the trailing window.
    """

    max_attempts: int = 5
    window_minutes: int = 15

    def as_item(self) -> RateLimitItem:
        return RateLimitItemPerMinute(
            self.max_attempts, self.window_minutes, namespace="login"
        )


def email_key(email: str) -> str:
    return f"email:{email}"


def ip_key(ip: str) -> str:
    return f"ip:{ip}"


class LoginRateLimiter:
    """Per-key moving window over a limits storage backend."""

    def __init__(
        self,
        policy: RateLimitPolicy | None = None,
        storage: Storage | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            policy: Threshold and window (defaults to 5 per 15 minutes).
            storage: limits storage (defaults to a fresh in-memory storage).
        """
        self._policy = policy or RateLimitPolicy()
        self._item = self._policy.as_item()
        self._strategy = MovingWindowRateLimiter(
            storage or storage_from_string("memory://")
        )
        # Keys this process has recorded attempts for; bounded by purge()
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    def allow(self, key: str) -> bool:
        """Record an attempt for key if the window has room.

        Returns:
            True if the attempt is accepted, False if the key is limited.
        """
        return self.allow_all([key])

    def allow_all(self, keys: Iterable[str]) -> bool:
        """Accept an attempt only if every key has room.

        Every key is tested before any is hit, under one lock, so an
        attempt refused by one key is not counted against the others.

        Args:
            keys: Keys that must all pass (e.g. email and ip keys).

        Returns:
            True if accepted (and recorded on every key), False otherwise.
        """
        keys = list(dict.fromkeys(keys))
        with self._lock:
            if not all(self._strategy.test(self._item, key) for key in keys):
                return False
            self._keys.update(keys)
            return all([self._strategy.hit(self._item, key) for key in keys])

    def remaining(self, key: str) -> int:
        """Attempts left for key in the current window."""
        stats = self._strategy.get_window_stats(self._item, key)
        return max(stats.remaining, 0)

    def reset(self, key: str) -> None:
        with self._lock:
            self._strategy.clear(self._item, key)
            self._keys.discard(key)

    def purge(self) -> int:
        """Forget keys whose windows hold no live attempts.

        Returns:
            Number of keys removed.
        """
        with self._lock:
            stale = [key for key in self._keys if self.remaining(key) >= self._item.amount]
            for key in stale:
                self._strategy.clear(self._item, key)
                self._keys.discard(key)
            return len(stale)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._keys)
