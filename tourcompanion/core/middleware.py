"""HTTP middleware for request ID propagation and correlation.

The middleware:
- Accepts the incoming request id header or generates a UUID
- Stores the id in contextvars so every log line of the request carries it
- Echoes the id and the total request duration in response headers
- Renders unhandled exceptions as the 500 envelope while the id is still
  bound

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from tourcompanion.core.config import settings
from tourcompanion.core.exception_handlers import general_exception_handler
from tourcompanion.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request context and the response.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Request-ID`` (or the
            configured header) and ``X-Request-Duration-ms`` added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    except Exception as exc:
        response = await general_exception_handler(request, exc)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
