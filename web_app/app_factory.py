"""FastAPI application factory."""

from fastapi import FastAPI

from .api import api_router
from .errors import register_exception_handlers
from .middleware.logging import LoggingMiddleware
from .web import web_router


def create_app(
    service_instance,
    config,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        service_instance: URLShortenerService, or None when the lifespan
            handler builds it at startup
        config: Configuration instance

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="URL Shortener",
        description="URL shortening service with a cached, pluggable durable store",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Store instances in app state for access in routes
    app.state.service = service_instance
    app.state.config = config

    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    # API first: the redirect router ends in a catch-all
    app.include_router(api_router, prefix="/api", tags=["API"])
    app.include_router(web_router, tags=["Web"])

    return app
