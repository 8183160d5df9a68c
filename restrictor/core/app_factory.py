"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from restrictor.api.routes import health_router, limits_router
from restrictor.core.config import settings
from restrictor.core.exception_handlers import setup_exception_handlers
from restrictor.core.logging import configure_logging
from restrictor.core.middleware import request_id_middleware
from restrictor.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Restrictor",
        description=(
            "Distributed sliding-window rate limiter. Records events per key in "
            "a shared store and answers whether a key exceeded its limit within "
            "the configured window."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
