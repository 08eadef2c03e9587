"""Rate limit endpoints used by the dashboard UI and the client portal.

Every route keys the caller by its client fingerprint. The read and reset
routes are themselves throttled by the ``api`` limiter.
"""

from fastapi import APIRouter, Depends, Request, Response, status

from tourcompanion.core.fingerprint import fingerprint_from_request
from tourcompanion.core.rate_limit import (
    API,
    bind_rate_limit,
    consume_rate_limit,
    enforce_rate_limit,
    get_rate_limiter,
    reset_rate_limit,
)
from tourcompanion.schemas.rate_limit import (
    RateLimitDecisionResponse,
    RateLimitStatusResponse,
)

router = APIRouter(prefix="/rate-limits", tags=["Rate limits"])


@router.post("/{name}/consume", response_model=RateLimitDecisionResponse)
async def consume(name: str, request: Request, response: Response) -> RateLimitDecisionResponse:
    """Count one gated action for the caller against limiter ``name``.

    The UI calls this before performing a throttled action (opening a
    portal page, submitting a login form) and renders feedback from the
    returned quota.

    Returns:
        RateLimitDecisionResponse: The allowed decision with quota headers.

    Raises:
        RateLimitAppError: 429 when the caller's window is exhausted.
        NotFoundAppError: 404 for an unknown limiter name.
    """
    decision = consume_rate_limit(name, request, response)
    return RateLimitDecisionResponse.from_decision(name, decision)


@router.get(
    "/{name}/status",
    response_model=RateLimitStatusResponse,
    dependencies=[Depends(enforce_rate_limit(API))],
)
async def get_status(name: str, request: Request) -> RateLimitStatusResponse:
    """Report the caller's quota for limiter ``name`` without consuming it."""
    limiter = get_rate_limiter(name)
    handle = bind_rate_limit(limiter, fingerprint_from_request(request))
    return RateLimitStatusResponse.from_status(
        name, limiter.config.max_requests, handle.status()
    )


@router.delete(
    "/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(enforce_rate_limit(API))],
)
async def reset(name: str, request: Request) -> Response:
    """Forget the caller's current window for limiter ``name``.

    The ``auth`` limiter refuses client resets, otherwise a single call
    would undo its attempt throttling.

    Raises:
        ForbiddenAppError: 403 for a limiter that does not allow resets.
        NotFoundAppError: 404 for an unknown limiter name.
    """
    reset_rate_limit(name, request)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
