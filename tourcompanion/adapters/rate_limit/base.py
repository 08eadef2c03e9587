"""Rate limiter interfaces and value objects.

Callers depend on ``AbstractRateLimiter`` and ``AbstractRateLimitStore``
rather than the concrete in-memory classes, so tests can inject an isolated
store and a deterministic clock.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ContextManager, Iterator


@dataclass
class RateLimitEntry:
    """Mutable per-key window record.

    Attributes:
        count: Requests observed in the current window (starts at 1).
        reset_time: Epoch milliseconds at which the window expires.
    """

    count: int
    reset_time: int

    def is_expired(self, now: int) -> bool:
        return now >= self.reset_time


@dataclass(frozen=True)
class RateLimiterConfig:
    """Immutable limiter configuration.

    Attributes:
        max_requests: Maximum allowed requests per window.
        window_ms: Window duration in milliseconds.
        key_prefix: Namespace applied to every stored key.

    Raises:
        ValueError: If max_requests or window_ms are not positive.
    """

    max_requests: int
    window_ms: int
    key_prefix: str

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")

    def full_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of an ``is_allowed`` call.

    Attributes:
        allowed: Whether the action may proceed.
        remaining: Requests left in the current window (0 when blocked).
        reset_time: Epoch milliseconds when the current window resets.
        limit: Max requests per window.
        retry_after_ms: Milliseconds until reset when blocked, else None.
    """

    allowed: bool
    remaining: int
    reset_time: int
    limit: int
    retry_after_ms: int | None = None


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only snapshot returned by ``get_status``."""

    count: int
    remaining: int
    reset_time: int


class AbstractRateLimitStore(ABC):
    """Storage for rate limit entries keyed by full key.

    Limiters sharing a store serialize their read-modify-write steps on
    ``lock``, so it must be re-entrant and common to every user of the store.
    """

    @property
    @abstractmethod
    def lock(self) -> ContextManager:
        raise NotImplementedError

    @abstractmethod
    def get(self, full_key: str) -> RateLimitEntry | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, full_key: str, entry: RateLimitEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, full_key: str) -> None:
        """Remove an entry. Must be a no-op for absent keys."""
        raise NotImplementedError

    @abstractmethod
    def items(self) -> Iterator[tuple[str, RateLimitEntry]]:
        """Iterate over a snapshot of ``(full_key, entry)`` pairs."""
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def is_allowed(self, key: str) -> RateLimitDecision:
        """Record a request for key and decide whether it may proceed.

        Args:
            key: Caller identity (e.g., a client fingerprint).

        Returns:
            RateLimitDecision describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def get_status(self, key: str) -> RateLimitStatus:
        """Return the current quota for key without mutating state."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget any window recorded for key."""
        raise NotImplementedError
