"""
Health Router

Liveness and readiness endpoints.

Reference Documents:
- Building Microservices (Newman) pp. 273-275: Service metrics and synthetic monitoring
- Building Python Microservices with FastAPI (Sinha) pp. 89-91: Dependency injection patterns
"""

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from vibe_router import __version__
from vibe_router.api.deps import get_provider_router
from vibe_router.providers.router import ProviderRouter

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    configured_providers: list[str]
    current_provider: str


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="healthy", version=__version__)


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(
    response: Response,
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> ReadinessResponse:
    """
    Ready when at least one backend can be called.

    Returns 503 with the same body otherwise.
    """
    configured = provider_router.get_configured_providers()
    if not configured:
        response.status_code = 503
    return ReadinessResponse(
        status="ready" if configured else "not_ready",
        configured_providers=configured,
        current_provider=provider_router.get_current_provider().id,
    )
