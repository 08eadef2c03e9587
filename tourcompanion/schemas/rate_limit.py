"""Pydantic schemas for rate limit responses."""

from __future__ import annotations

from pydantic import BaseModel, Field

from tourcompanion.adapters.rate_limit.base import RateLimitDecision, RateLimitStatus


class RateLimitDecisionResponse(BaseModel):
    """Outcome of consuming one request from a limiter."""

    limiter: str = Field(..., description="Name of the limiter that was consulted.")
    allowed: bool = Field(..., description="Whether the action may proceed.")
    limit: int = Field(..., ge=1, description="Maximum requests per window.")
    remaining: int = Field(
        ..., ge=0, description="Requests left in the current window."
    )
    reset_time: int = Field(
        ..., description="Epoch milliseconds when the current window resets."
    )

    @classmethod
    def from_decision(cls, limiter: str, decision: RateLimitDecision) -> "RateLimitDecisionResponse":
        return cls(
            limiter=limiter,
            allowed=decision.allowed,
            limit=decision.limit,
            remaining=decision.remaining,
            reset_time=decision.reset_time,
        )


class RateLimitStatusResponse(BaseModel):
    """Current quota of the caller, read without consuming a request."""

    limiter: str = Field(..., description="Name of the limiter.")
    limit: int = Field(..., ge=1, description="Maximum requests per window.")
    count: int = Field(
        ..., ge=0, description="Requests counted in the current window (0 when none is open)."
    )
    remaining: int = Field(..., ge=0, description="Requests left in the window.")
    reset_time: int = Field(
        ...,
        description=(
            "Epoch milliseconds when the window resets; when no window is open, "
            "the reset time a request made now would get."
        ),
    )

    @classmethod
    def from_status(
        cls, limiter: str, limit: int, status: RateLimitStatus
    ) -> "RateLimitStatusResponse":
        return cls(
            limiter=limiter,
            limit=limit,
            count=status.count,
            remaining=status.remaining,
            reset_time=status.reset_time,
        )
