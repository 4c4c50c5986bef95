"""
Providers Router

Provider discovery and selection, aggregate stats and circuit state.

Reference Documents:
- GUIDELINES: REST constraints (Buelta pp. 92-93)
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, model_validator

from vibe_router.api.deps import get_provider_router
from vibe_router.models.chat import CurrentProvider, FreeTierModel, ProviderInfo, RouterStats
from vibe_router.providers.router import ProviderRouter

router = APIRouter(prefix="/v1", tags=["Providers"])


# =============================================================================
# Request / Response Models
# =============================================================================


class SelectProviderRequest(BaseModel):
    """
    Body of PUT /v1/providers/current.

    A bare ``model`` is qualified with ``provider`` when both are set.
    """

    provider: Optional[str] = None
    model: Optional[str] = None

    @model_validator(mode="after")
    def require_one(self) -> "SelectProviderRequest":
        if not self.provider and not self.model:
            raise ValueError("provider or model is required")
        return self


class CircuitStatsResponse(BaseModel):
    state: str
    failure_count: int
    success_count: int
    total_requests: int
    total_failures: int
    last_failure_time: Optional[datetime] = None
    last_state_change: datetime


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/providers", response_model=list[ProviderInfo])
async def list_providers(
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> list[ProviderInfo]:
    return provider_router.list_providers()


@router.get("/providers/current", response_model=CurrentProvider)
async def get_current_provider(
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> CurrentProvider:
    return provider_router.get_current_provider()


@router.put("/providers/current", response_model=CurrentProvider)
async def select_provider(
    body: SelectProviderRequest,
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> CurrentProvider:
    """Select a backend and/or model; the choice is persisted."""
    if body.provider:
        current = provider_router.set_provider(body.provider)
    if body.model:
        model = body.model
        if body.provider and "/" not in model:
            model = f"{body.provider}/{model}"
        current = provider_router.set_model(model)
    return current


@router.get("/providers/free-tier", response_model=list[FreeTierModel])
async def list_free_tier_models(
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> list[FreeTierModel]:
    return provider_router.get_free_tier_models()


@router.get("/stats", response_model=RouterStats)
async def get_stats(
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> RouterStats:
    return provider_router.get_stats()


@router.delete("/stats", status_code=status.HTTP_204_NO_CONTENT)
async def reset_stats(
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> None:
    provider_router.reset_stats()


@router.get("/circuits", response_model=dict[str, CircuitStatsResponse])
async def get_circuits(
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> dict[str, CircuitStatsResponse]:
    """Breaker state per backend that has been called at least once."""
    return {
        name: CircuitStatsResponse(
            state=stats.state.value,
            failure_count=stats.failure_count,
            success_count=stats.success_count,
            total_requests=stats.total_requests,
            total_failures=stats.total_failures,
            last_failure_time=stats.last_failure_time,
            last_state_change=stats.last_state_change,
        )
        for name, stats in provider_router.get_circuit_stats().items()
    }
