"""
vibe-router - Application Entry Point

FastAPI application exposing the provider router over local HTTP:
provider listing and selection, chat, stats, circuit state and Prometheus
metrics at /metrics.

Run with:
    uvicorn vibe_router.main:app --port 8787
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI

from vibe_router import __version__
from vibe_router.api.deps import get_provider_router, get_settings
from vibe_router.api.errors import register_exception_handlers
from vibe_router.api.middleware import RequestLoggingMiddleware
from vibe_router.api.routes import chat_router, health_router, providers_router
from vibe_router.observability.logging import configure_logging, get_logger
from vibe_router.observability.metrics import get_metrics_app

APP_NAME = "vibe-router"
APP_DESCRIPTION = "Provider routing and resilience core for LLM backends"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup/shutdown events.

    The router is built eagerly so misconfiguration surfaces at startup
    rather than on the first request.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, force=True)
    provider_router = app.dependency_overrides.get(get_provider_router, get_provider_router)()

    logger.info(
        "service starting",
        service=settings.service_name,
        version=__version__,
        environment=settings.environment,
        provider=provider_router.get_current_provider().id,
    )
    app.state.initialized = True
    app.state.environment = settings.environment

    yield

    logger.info("service shutting down", service=settings.service_name)
    app.state.initialized = False


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=APP_NAME,
        description=APP_DESCRIPTION,
        version=__version__,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(providers_router)
    app.include_router(chat_router)
    app.mount("/metrics", get_metrics_app())

    @app.get("/", tags=["Info"])
    async def root() -> dict[str, Any]:
        """Root endpoint returning basic service information."""
        return {
            "service": APP_NAME,
            "version": __version__,
            "docs": "/docs" if settings.environment != "production" else "disabled",
        }

    return app


app = create_app()
