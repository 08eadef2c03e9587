"""Named rate limiters and their FastAPI wiring.

The system throttles three kinds of client action, each with its own
process-wide limiter built from settings:

- ``client_portal``: public portal page loads
- ``api``: general API calls
- ``auth``: authentication attempts

Callers are keyed by their client fingerprint (see
``tourcompanion.core.fingerprint``). Blocked requests surface as
``RateLimitAppError`` which the exception handlers turn into HTTP 429.
"""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable

from fastapi import Request, Response

from tourcompanion.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitDecision,
    RateLimiterConfig,
    RateLimitStatus,
)
from tourcompanion.adapters.rate_limit.in_memory import FixedWindowRateLimiter
from tourcompanion.core.config import settings
from tourcompanion.core.errors import (
    ForbiddenAppError,
    NotFoundAppError,
    RateLimitAppError,
)
from tourcompanion.core.fingerprint import fingerprint_from_request

logger = logging.getLogger(__name__)

CLIENT_PORTAL = "client_portal"
API = "api"
AUTH = "auth"

LIMITER_NAMES: tuple[str, ...] = (CLIENT_PORTAL, API, AUTH)

# Clients may clear their own window only where doing so is harmless
RESETTABLE_LIMITERS: frozenset[str] = frozenset({CLIENT_PORTAL, API})

SECURITY_EVENT_RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"

_limiters: dict[str, FixedWindowRateLimiter] = {}


def get_limiter_config(name: str) -> RateLimiterConfig:
    """Resolve the configuration of a named limiter from settings.

    Args:
        name: One of ``LIMITER_NAMES``.

    Returns:
        RateLimiterConfig whose key prefix is the limiter name.

    Raises:
        NotFoundAppError: If the name is not a known limiter.
    """

    if name not in LIMITER_NAMES:
        raise NotFoundAppError(
            code="unknown_rate_limiter",
            message=f"Unknown rate limiter '{name}'",
            details={"limiter": name, "available": list(LIMITER_NAMES)},
        )

    return RateLimiterConfig(
        max_requests=getattr(settings.app, f"{name}_max_requests"),
        window_ms=getattr(settings.app, f"{name}_window_ms"),
        key_prefix=name,
    )


def get_rate_limiter(name: str) -> FixedWindowRateLimiter:
    """Return the process-wide limiter for ``name``.

    Instances are cached in-module so counters survive across requests.
    A limiter is rebuilt (forgetting its counters) when its configuration
    changes, which mostly happens in tests.
    """

    config = get_limiter_config(name)
    limiter = _limiters.get(name)
    if limiter is None or limiter.config != config:
        limiter = FixedWindowRateLimiter(config)
        _limiters[name] = limiter
    return limiter


def reset_rate_limiters() -> None:
    """Drop every cached limiter and its counters."""

    _limiters.clear()


@dataclass(frozen=True)
class RateLimitHandle:
    """A limiter bound to one caller key."""

    limiter: AbstractRateLimiter
    key: str

    def check(self) -> RateLimitDecision:
        """Count one request for the bound key.

        Returns:
            RateLimitDecision from the limiter's ``is_allowed``.
        """
        return self.limiter.is_allowed(self.key)

    def status(self) -> RateLimitStatus:
        """Read the bound key's quota without consuming it.

        Returns:
            RateLimitStatus from the limiter's ``get_status``.
        """
        return self.limiter.get_status(self.key)

    def reset(self) -> None:
        """Forget the bound key's current window."""
        self.limiter.reset(self.key)


def bind_rate_limit(limiter: AbstractRateLimiter, key: str) -> RateLimitHandle:
    """Bind ``limiter`` to ``key`` so UI-facing code can pass one object around."""

    return RateLimitHandle(limiter=limiter, key=key)


def hash_rate_limit_key(key: str) -> str:
    """Hash a rate limit key for logging without exposing the fingerprint."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def build_rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    """Describe a decision as ``X-RateLimit-*`` (and ``Retry-After``) headers.

    ``X-RateLimit-Reset`` is in epoch seconds, rounded up.
    """

    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(math.ceil(decision.reset_time / 1000)),
    }
    if not decision.allowed:
        retry_after_ms = decision.retry_after_ms or 0
        headers["Retry-After"] = str(max(0, math.ceil(retry_after_ms / 1000)))
    return headers


def consume_rate_limit(
    name: str,
    request: Request,
    response: Response | None = None,
) -> RateLimitDecision:
    """Count the current request against limiter ``name``.

    Args:
        name: Limiter name.
        request: Incoming request; its fingerprint is the limiter key.
        response: Response whose headers receive the quota when allowed.

    Returns:
        The allowed decision.

    Raises:
        NotFoundAppError: If the limiter name is unknown.
        RateLimitAppError: When the caller's window is exhausted.
    """

    limiter = get_rate_limiter(name)
    key = fingerprint_from_request(request)
    decision = limiter.is_allowed(key)
    headers = build_rate_limit_headers(decision)

    log_extra = {
        "limiter": name,
        "key_hash": hash_rate_limit_key(key),
        "limit": decision.limit,
        "remaining": decision.remaining,
        "window_ms": limiter.config.window_ms,
    }

    if decision.allowed:
        logger.info("rate_limit.allowed", extra=log_extra)
        if response is not None and settings.app.rate_limit_include_headers:
            response.headers.update(headers)
        return decision

    retry_after = int(headers["Retry-After"])
    logger.warning(
        "rate_limit.exceeded",
        extra={
            **log_extra,
            "retry_after_s": retry_after,
            "security_event": SECURITY_EVENT_RATE_LIMIT_EXCEEDED,
        },
    )

    raise RateLimitAppError(
        code="rate_limit_exceeded",
        message="Rate limit exceeded. Try again later.",
        details={
            "limiter": name,
            "limit": decision.limit,
            "remaining": decision.remaining,
            "reset_time": decision.reset_time,
            "retry_after": retry_after,
        },
        headers=headers if settings.app.rate_limit_include_headers else None,
    )


def reset_rate_limit(name: str, request: Request) -> None:
    """Clear the caller's window on limiter ``name``.

    Args:
        name: Limiter name.
        request: Incoming request; its fingerprint is the limiter key.

    Raises:
        NotFoundAppError: If the limiter name is unknown.
        ForbiddenAppError: If the limiter does not allow client resets.
    """

    limiter = get_rate_limiter(name)
    if name not in RESETTABLE_LIMITERS:
        raise ForbiddenAppError(
            code="rate_limit_reset_forbidden",
            message=f"Rate limiter '{name}' cannot be reset by clients",
            details={"limiter": name, "available": sorted(RESETTABLE_LIMITERS)},
        )

    key = fingerprint_from_request(request)
    bind_rate_limit(limiter, key).reset()
    logger.info(
        "rate_limit.reset",
        extra={"limiter": name, "key_hash": hash_rate_limit_key(key)},
    )


def enforce_rate_limit(name: str) -> Callable[[Request, Response], Awaitable[None]]:
    """Build a FastAPI dependency that gates a route with limiter ``name``.

    Usage:
        @router.get("/portal", dependencies=[Depends(enforce_rate_limit("client_portal"))])

    The dependency is a no-op when ``APP_RATE_LIMIT_ENABLED`` is false.
    """

    get_limiter_config(name)

    async def dependency(request: Request, response: Response) -> None:
        if not settings.app.rate_limit_enabled:
            return
        consume_rate_limit(name, request, response)

    dependency.__name__ = f"enforce_{name}_rate_limit"
    return dependency
