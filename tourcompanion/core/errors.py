"""Application-level exception types.

This module defines domain errors used across the HTTP layer, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    limiter: str
    available: list[str]
    limit: int
    remaining: int
    reset_time: int
    retry_after: int
    request_id: str


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class NotFoundAppError(AppError):
    """Raised when a named resource (e.g., a limiter preset) does not exist."""


class ForbiddenAppError(AppError):
    """Raised when a caller asks for an operation its role does not permit."""


@dataclass
class RateLimitAppError(AppError):
    """Raised by the HTTP layer when a caller's quota is exhausted.

    Attributes:
        headers: Response headers describing the quota (may be empty).
    """

    headers: dict[str, str] | None = None
