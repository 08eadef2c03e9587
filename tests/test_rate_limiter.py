"""Unit tests for the in-memory fixed-window rate limiter."""

import threading
from unittest.mock import Mock

import pytest

from tourcompanion.adapters.rate_limit.base import RateLimitEntry, RateLimiterConfig
from tourcompanion.adapters.rate_limit.in_memory import (
    FixedWindowRateLimiter,
    InMemoryRateLimitStore,
    epoch_millis,
)


class FakeClock:
    """Deterministic millisecond clock used to simulate window rollover."""

    def __init__(self, start: int = 0) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


def _limiter(
    max_requests: int = 3,
    window_ms: int = 1000,
    *,
    clock: FakeClock | None = None,
    store: InMemoryRateLimitStore | None = None,
    key_prefix: str = "test",
) -> FixedWindowRateLimiter:
    config = RateLimiterConfig(
        max_requests=max_requests, window_ms=window_ms, key_prefix=key_prefix
    )
    return FixedWindowRateLimiter(config, store=store, clock=clock or FakeClock())


def test_allows_up_to_limit_with_decreasing_remaining() -> None:
    limiter = _limiter(max_requests=4)

    decisions = [limiter.is_allowed("k") for _ in range(4)]

    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == [3, 2, 1, 0]


def test_blocks_when_over_limit_without_mutating_count() -> None:
    clock = FakeClock(start=500)
    store = InMemoryRateLimitStore()
    limiter = _limiter(max_requests=2, window_ms=1000, clock=clock, store=store)

    limiter.is_allowed("k")
    limiter.is_allowed("k")
    clock.advance(100)

    blocked = limiter.is_allowed("k")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.reset_time == 1500
    assert blocked.retry_after_ms == 900
    assert store.get("test:k") == RateLimitEntry(count=2, reset_time=1500)

    # Repeated rejections never extend or bump the window
    limiter.is_allowed("k")
    assert store.get("test:k") == RateLimitEntry(count=2, reset_time=1500)


def test_allowed_decisions_carry_no_retry_hint() -> None:
    decision = _limiter().is_allowed("k")

    assert decision.retry_after_ms is None
    assert decision.limit == 3


def test_new_window_after_reset_time() -> None:
    clock = FakeClock()
    limiter = _limiter(max_requests=1, window_ms=10, clock=clock)

    assert limiter.is_allowed("k").allowed is True
    assert limiter.is_allowed("k").allowed is False

    clock.advance(10)
    decision = limiter.is_allowed("k")
    assert decision.allowed is True
    assert decision.remaining == 0
    assert decision.reset_time == 20


def test_concrete_timeline() -> None:
    clock = FakeClock()
    limiter = _limiter(max_requests=3, window_ms=1000, clock=clock)

    timeline = []
    for t in (0, 10, 20, 30, 1001):
        clock.current = t
        d = limiter.is_allowed("a")
        timeline.append((d.allowed, d.remaining, d.reset_time))

    assert timeline == [
        (True, 2, 1000),
        (True, 1, 1000),
        (True, 0, 1000),
        (False, 0, 1000),
        (True, 2, 2001),
    ]


def test_isolated_by_key() -> None:
    clock = FakeClock()
    limiter = _limiter(max_requests=1, clock=clock)

    assert limiter.is_allowed("k1").allowed is True
    before = limiter.get_status("k2")
    assert limiter.is_allowed("k1").allowed is False

    assert limiter.get_status("k2") == before
    assert limiter.is_allowed("k2").allowed is True
    assert limiter.get_status("k1").count == 1


def test_prefix_namespaces_keys_in_a_shared_store() -> None:
    store = InMemoryRateLimitStore()
    clock = FakeClock()
    portal = _limiter(max_requests=1, store=store, clock=clock, key_prefix="client_portal")
    auth = _limiter(max_requests=1, store=store, clock=clock, key_prefix="auth")

    assert portal.is_allowed("fp").allowed is True
    assert auth.is_allowed("fp").allowed is True
    assert "client_portal:fp" in store
    assert "auth:fp" in store
    assert len(store) == 2


def test_accepts_any_string_key() -> None:
    limiter = _limiter()

    assert limiter.is_allowed("").allowed is True
    assert limiter.is_allowed("with:colons and spaces").allowed is True


def test_get_status_without_entry_reports_hypothetical_window() -> None:
    clock = FakeClock(start=250)
    store = InMemoryRateLimitStore()
    limiter = _limiter(max_requests=3, window_ms=1000, clock=clock, store=store)

    first = limiter.get_status("k")
    second = limiter.get_status("k")

    assert first.count == 0
    assert first.remaining == 3
    assert first.reset_time == 1250
    assert second == first
    assert len(store) == 0


def test_get_status_reflects_live_window() -> None:
    clock = FakeClock()
    limiter = _limiter(max_requests=3, window_ms=1000, clock=clock)
    limiter.is_allowed("k")
    limiter.is_allowed("k")
    clock.advance(400)

    status = limiter.get_status("k")
    assert status.count == 2
    assert status.remaining == 1
    assert status.reset_time == 1000


def test_get_status_treats_expired_entry_as_absent() -> None:
    clock = FakeClock()
    store = InMemoryRateLimitStore()
    limiter = _limiter(max_requests=3, window_ms=1000, clock=clock, store=store)
    limiter.is_allowed("k")

    clock.current = 1000
    status = limiter.get_status("k")

    assert status.count == 0
    assert status.remaining == 3
    assert status.reset_time == 2000
    # Reading never reclaims or rewrites entries
    assert store.get("test:k") == RateLimitEntry(count=1, reset_time=1000)


def test_reset_clears_window_and_is_idempotent() -> None:
    limiter = _limiter(max_requests=2)
    limiter.is_allowed("k")
    limiter.is_allowed("k")

    limiter.reset("k")
    status = limiter.get_status("k")
    assert status.count == 0
    assert status.remaining == 2

    limiter.reset("k")
    limiter.reset("never-seen")
    assert limiter.is_allowed("k").remaining == 1


def test_is_allowed_evicts_expired_entries_of_other_keys() -> None:
    clock = FakeClock()
    store = InMemoryRateLimitStore()
    limiter = _limiter(window_ms=100, clock=clock, store=store)

    for key in ("a", "b", "c"):
        limiter.is_allowed(key)
    clock.advance(50)
    limiter.is_allowed("d")
    assert len(store) == 4

    clock.advance(60)
    limiter.is_allowed("e")

    assert "test:a" not in store
    assert "test:d" in store
    assert "test:e" in store
    assert len(store) == 2


def test_cleanup_returns_number_of_evicted_entries() -> None:
    clock = FakeClock()
    store = InMemoryRateLimitStore()
    limiter = _limiter(window_ms=100, clock=clock, store=store)
    limiter.is_allowed("a")
    limiter.is_allowed("b")

    assert limiter.cleanup() == 0

    clock.advance(100)
    assert limiter.cleanup() == 2
    assert len(store) == 0


def test_default_clock_uses_epoch_milliseconds(monkeypatch: pytest.MonkeyPatch) -> None:
    from tourcompanion.adapters.rate_limit import in_memory

    monkeypatch.setattr(in_memory.time, "time", Mock(return_value=1_700_000_000.5))

    assert epoch_millis() == 1_700_000_000_500
    config = RateLimiterConfig(max_requests=1, window_ms=60_000, key_prefix="p")
    decision = FixedWindowRateLimiter(config).is_allowed("k")
    assert decision.reset_time == 1_700_000_060_500


def test_each_limiter_owns_a_private_store_by_default() -> None:
    first = _limiter(max_requests=1)
    second = _limiter(max_requests=1)

    assert first.is_allowed("k").allowed is True
    assert second.is_allowed("k").allowed is True
    assert first.store is not second.store


def test_limiters_sharing_a_store_share_its_lock() -> None:
    store = InMemoryRateLimitStore()
    first = _limiter(store=store)
    second = _limiter(store=store)

    assert first.store.lock is second.store.lock
    assert InMemoryRateLimitStore().lock is not store.lock


def test_shared_store_counts_every_request_across_threads() -> None:
    store = InMemoryRateLimitStore()
    limiters = [_limiter(max_requests=10_000, store=store) for _ in range(2)]
    barrier = threading.Barrier(8)

    def hammer(limiter: FixedWindowRateLimiter) -> None:
        barrier.wait()
        for _ in range(250):
            limiter.is_allowed("shared")

    threads = [
        threading.Thread(target=hammer, args=(limiters[i % 2],)) for i in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get("test:shared").count == 2000
    assert limiters[0].get_status("shared").remaining == 8000


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_ms": 1000, "key_prefix": "p"},
        {"max_requests": 1, "window_ms": 0, "key_prefix": "p"},
        {"max_requests": -3, "window_ms": -1, "key_prefix": "p"},
    ],
)
def test_invalid_config(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimiterConfig(**kwargs)


def test_config_full_key() -> None:
    config = RateLimiterConfig(max_requests=1, window_ms=1, key_prefix="auth")

    assert config.full_key("abc") == "auth:abc"
