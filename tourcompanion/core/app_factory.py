"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from tourcompanion.api.routes import health_router, rate_limits_router
from tourcompanion.core.config import settings
from tourcompanion.core.exception_handlers import setup_exception_handlers
from tourcompanion.core.logging import configure_logging
from tourcompanion.core.middleware import request_id_middleware
from tourcompanion.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="TourCompanion Rate Limit API",
        description=(
            "Client-side throttling for the TourCompanion dashboard: public "
            "portal page loads, API calls and authentication attempts are "
            "counted per client fingerprint in fixed windows. Quotas are "
            "advisory and per process."
        ),
        version="0.1.0",
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(rate_limits_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
