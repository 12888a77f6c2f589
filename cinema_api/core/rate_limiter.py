# cinema_api/core/rate_limiter.py
"""
Fixed-window attempt counter for brute-force sensitive endpoints.

Model:
  - One counter per (kind, identifier), e.g. ("login", "203.0.113.7").
  - The first attempt opens a window of `window_minutes`; later attempts
    inside the window only increment the count (the expiry is NOT pushed
    back).
  - Once `attempts >= max_attempts` the key is blocked until the window
    expires; after that the next attempt opens a fresh window.

State lives in a `RateLimitStore`. The default in-memory store is
process-local and forgets everything on restart, which is fine for a
throttle. Multi-process deployments can plug in a shared store without
touching call sites.
"""
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Protocol

from cinema_api.core.config import Settings, get_settings
from cinema_api.core.security import utcnow

LOGIN = "login"
FORGOT_PASSWORD = "forgot-password"


@dataclass(frozen=True)
class RateLimitConfig:
    max_attempts: int
    window_minutes: int


@dataclass(frozen=True)
class RateLimitResult:
    """`retry_after` is set only when `allowed` is False."""

    allowed: bool
    retry_after: datetime | None = None


@dataclass
class RateLimitEntry:
    attempts: int
    expires_at: datetime


class RateLimitStore(Protocol):
    def get(self, key: str) -> RateLimitEntry | None: ...

    def set(self, key: str, entry: RateLimitEntry) -> None: ...

    def increment(self, key: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def purge_expired(self, now: datetime) -> int: ...


class InMemoryRateLimitStore:
    """Dict-backed store guarded by a lock."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> RateLimitEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return RateLimitEntry(entry.attempts, entry.expires_at)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        with self._lock:
            self._entries[key] = entry

    def increment(self, key: str) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                entry.attempts += 1

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [k for k, e in self._entries.items() if now >= e.expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RateLimiter:
    """
    Business logic on top of a RateLimitStore.

    Args:
        store: backing store (defaults to a new InMemoryRateLimitStore).
        clock: returns "now" as an aware UTC datetime; tests pass a fake.
    """

    def __init__(
        self,
        store: RateLimitStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.clock = clock or utcnow

    @staticmethod
    def _key(kind: str, identifier: str) -> str:
        return f"{kind}:{identifier}"

    def check_rate_limit(
        self, kind: str, identifier: str, config: RateLimitConfig
    ) -> RateLimitResult:
        entry = self.store.get(self._key(kind, identifier))
        now = self.clock()

        if entry is None or now >= entry.expires_at:
            return RateLimitResult(allowed=True)

        if entry.attempts >= config.max_attempts:
            return RateLimitResult(allowed=False, retry_after=entry.expires_at)

        return RateLimitResult(allowed=True)

    def record_attempt(
        self, kind: str, identifier: str, config: RateLimitConfig
    ) -> None:
        key = self._key(kind, identifier)
        now = self.clock()
        entry = self.store.get(key)

        if entry is None or now >= entry.expires_at:
            # Sweep stale windows whenever a new one opens.
            self.store.purge_expired(now)
            self.store.set(
                key,
                RateLimitEntry(
                    attempts=1,
                    expires_at=now + timedelta(minutes=config.window_minutes),
                ),
            )
        else:
            self.store.increment(key)

    def reset_rate_limit(self, kind: str, identifier: str) -> None:
        self.store.delete(self._key(kind, identifier))

    def clear_all(self) -> None:
        self.store.clear()

    def cleanup_expired(self) -> int:
        """Drop windows that have already expired. Returns how many."""
        return self.store.purge_expired(self.clock())


def login_rate_limit(settings: Settings | None = None) -> RateLimitConfig:
    settings = settings or get_settings()
    return RateLimitConfig(
        max_attempts=settings.RATE_LIMIT_LOGIN_MAX_ATTEMPTS,
        window_minutes=settings.RATE_LIMIT_LOGIN_WINDOW_MINUTES,
    )


def forgot_password_rate_limit(settings: Settings | None = None) -> RateLimitConfig:
    settings = settings or get_settings()
    return RateLimitConfig(
        max_attempts=settings.RATE_LIMIT_FORGOT_PASSWORD_MAX_ATTEMPTS,
        window_minutes=settings.RATE_LIMIT_FORGOT_PASSWORD_WINDOW_MINUTES,
    )
