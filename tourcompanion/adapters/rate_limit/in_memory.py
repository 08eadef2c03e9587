"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: every process (or worker) keeps independent counters,
  and a restart forgets them.
- Expired entries are reclaimed lazily: each ``is_allowed`` call scans the
  store and drops windows that have passed. The scan is O(number of keys).
- Thread-safe: compound read-modify-write steps run under the store's lock,
  so limiters sharing one store also exclude each other.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, ContextManager, Iterator

from tourcompanion.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractRateLimitStore,
    RateLimitDecision,
    RateLimitEntry,
    RateLimiterConfig,
    RateLimitStatus,
)

logger = logging.getLogger(__name__)


def epoch_millis() -> int:
    """Return the current UNIX time in whole milliseconds."""
    return int(time.time() * 1000)


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Dict-backed store owned by a single limiter (or shared on purpose)."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> ContextManager:
        return self._lock

    def get(self, full_key: str) -> RateLimitEntry | None:
        return self._entries.get(full_key)

    def set(self, full_key: str, entry: RateLimitEntry) -> None:
        self._entries[full_key] = entry

    def delete(self, full_key: str) -> None:
        self._entries.pop(full_key, None)

    def items(self) -> Iterator[tuple[str, RateLimitEntry]]:
        # Snapshot so callers may delete while iterating
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, full_key: object) -> bool:
        return full_key in self._entries


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key inside a fixed window.

    The window for a key opens on its first request and lasts
    ``config.window_ms``; once ``now >= reset_time`` the next request opens
    a fresh window. Rejected requests never extend or mutate the window.

    Important:
        This is an advisory, client-facing throttle. Keys derived from
        fingerprints can be forged, so it must not be relied on as a
        security control.
    """

    def __init__(
        self,
        config: RateLimiterConfig,
        *,
        store: AbstractRateLimitStore | None = None,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Quota, window size and key namespace.
            store: Entry storage; a private in-memory store when omitted.
            clock: Time source returning UNIX time in milliseconds.
        """
        self._config = config
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock

    @property
    def config(self) -> RateLimiterConfig:
        return self._config

    @property
    def store(self) -> AbstractRateLimitStore:
        return self._store

    def _allowed(self, *, remaining: int, reset_time: int) -> RateLimitDecision:
        """Build an allowed decision for the current window.

        Args:
            remaining: Requests still available after this one.
            reset_time: Epoch milliseconds at which the window expires.

        Returns:
            RateLimitDecision with ``allowed=True``.
        """
        return RateLimitDecision(
            allowed=True,
            remaining=remaining,
            reset_time=reset_time,
            limit=self._config.max_requests,
        )

    def _blocked(self, *, now: int, reset_time: int) -> RateLimitDecision:
        """Build a rejected decision for an exhausted window.

        Args:
            now: Current epoch milliseconds.
            reset_time: Epoch milliseconds at which the window expires.

        Returns:
            RateLimitDecision with ``allowed=False`` and a non-negative
            ``retry_after_ms``.
        """
        return RateLimitDecision(
            allowed=False,
            remaining=0,
            reset_time=reset_time,
            limit=self._config.max_requests,
            retry_after_ms=max(0, reset_time - now),
        )

    def _cleanup_locked(self, now: int) -> int:
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            self._store.delete(key)
        if expired:
            logger.debug(
                "rate_limit.cleanup",
                extra={
                    "key_prefix": self._config.key_prefix,
                    "evicted": len(expired),
                    "entries": len(self._store),
                },
            )
        return len(expired)

    def cleanup(self) -> int:
        """Delete every expired entry from the store.

        Returns:
            Number of entries evicted.
        """
        with self._store.lock:
            return self._cleanup_locked(self._clock())

    def is_allowed(self, key: str) -> RateLimitDecision:
        """Count a request for key if the current window has room.

        Args:
            key: Arbitrary caller identity; any string is accepted.

        Returns:
            RateLimitDecision with the outcome and remaining quota.
        """
        full_key = self._config.full_key(key)

        with self._store.lock:
            now = self._clock()
            self._cleanup_locked(now)

            entry = self._store.get(full_key)
            if entry is None or entry.is_expired(now):
                reset_time = now + self._config.window_ms
                self._store.set(full_key, RateLimitEntry(count=1, reset_time=reset_time))
                return self._allowed(
                    remaining=self._config.max_requests - 1,
                    reset_time=reset_time,
                )

            if entry.count >= self._config.max_requests:
                return self._blocked(now=now, reset_time=entry.reset_time)

            entry.count += 1
            self._store.set(full_key, entry)
            return self._allowed(
                remaining=self._config.max_requests - entry.count,
                reset_time=entry.reset_time,
            )

    def get_status(self, key: str) -> RateLimitStatus:
        """Report the quota for key without creating or changing entries.

        When no live window exists, the returned ``reset_time`` describes the
        window a request made now would open.
        """
        full_key = self._config.full_key(key)

        with self._store.lock:
            now = self._clock()
            entry = self._store.get(full_key)
            if entry is None or entry.is_expired(now):
                return RateLimitStatus(
                    count=0,
                    remaining=self._config.max_requests,
                    reset_time=now + self._config.window_ms,
                )
            return RateLimitStatus(
                count=entry.count,
                remaining=self._config.max_requests - entry.count,
                reset_time=entry.reset_time,
            )

    def reset(self, key: str) -> None:
        """Forget the window for key. A no-op when none exists.

        Args:
            key: Caller identity whose entry is deleted.
        """
        with self._store.lock:
            self._store.delete(self._config.full_key(key))
