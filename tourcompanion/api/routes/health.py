from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check used by load balancers and uptime checks.

    Returns:
        dict: ``{"status": "ok"}`` while the process is serving requests.
    """

    return {"status": "ok"}
