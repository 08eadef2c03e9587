"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses → matching HTTP status (403, 404, 429, else 400)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from tourcompanion.core.errors import (
    AppError,
    ForbiddenAppError,
    NotFoundAppError,
    RateLimitAppError,
)
from tourcompanion.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_code_for(exc: AppError) -> int:
    if isinstance(exc, RateLimitAppError):
        return 429
    if isinstance(exc, NotFoundAppError):
        return 404
    if isinstance(exc, ForbiddenAppError):
        return 403
    # Any other client fault
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to HTTP status codes:
    - ForbiddenAppError → 403 Forbidden
    - NotFoundAppError → 404 Not Found
    - RateLimitAppError → 429 Too Many Requests (with quota headers)

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = _status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = None
    if isinstance(exc, RateLimitAppError) and exc.headers:
        headers = exc.headers

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure for debugging while returning a generic message, so no
    stack traces or internal messages reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
