"""
Chat and provider models.

This module contains the value objects that flow through the routing core:
conversation messages, per-request options, backend responses, model and
provider metadata, and the aggregate router statistics.

Pattern: Pydantic for validation at API boundaries (Sinha pp. 193-195)
Pattern: Domain models as value objects (Percival & Gregory pp. 59-65)
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Messages and Options
# =============================================================================


class ChatMessage(BaseModel):
    """A single conversation turn. An ordered list forms a conversation."""

    role: Literal["system", "user", "assistant", "tool"] = Field(
        ..., description="Message author role"
    )
    content: str = Field(..., description="Message text")

    model_config = {"frozen": True}


class ChatRequestOptions(BaseModel):
    """
    Optional per-request parameters.

    ``model`` is either an explicit "backend/model" override
    (e.g. "anthropic/claude-sonnet-4-20250514") or a bare model id.
    """

    model: Optional[str] = Field(default=None, description="Model override")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    stop: Optional[list[str]] = Field(default=None, description="Stop sequences")
    system: Optional[str] = Field(default=None, description="System prompt")

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: Optional[str]) -> Optional[str]:
        """Reject blank overrides so they cannot mask the default."""
        if v is not None and not v.strip():
            raise ValueError("model must not be blank")
        return v.strip() if v is not None else v


# =============================================================================
# Responses
# =============================================================================


class Usage(BaseModel):
    """Token accounting for one response."""

    prompt_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0, description="Cost in USD")


class ProviderResponse(BaseModel):
    """
    Response of a backend chat call.

    Attributes:
        content: Generated text.
        usage: Token and cost accounting.
        latency_ms: Wall time of the call in milliseconds.
        model: Model that actually served the request.
        provider: Backend id that actually served the request.
    """

    content: str
    usage: Usage = Field(default_factory=Usage)
    latency_ms: float = Field(default=0.0, ge=0.0)
    model: str
    provider: str


# =============================================================================
# Model and Provider Metadata
# =============================================================================


class ModelTier(str, Enum):
    """Coarse quality/speed classification used for ordering."""

    FAST = "fast"
    BALANCED = "balanced"
    MAX = "max"
    REASONING = "reasoning"


class ModelInfo(BaseModel):
    """
    Static description of a model offered by a backend.

    Prices are USD per one million tokens.
    """

    id: str
    name: str
    tier: ModelTier = ModelTier.BALANCED
    free_tier: bool = False
    context_window: int = 128_000
    max_output: int = 4096
    capabilities: tuple[str, ...] = ("completion",)
    input_price: float = 0.0
    output_price: float = 0.0

    model_config = {"frozen": True}

    def estimate_cost(self, prompt_tokens: int, output_tokens: int) -> float:
        """Cost in USD for the given token counts."""
        return (
            prompt_tokens * self.input_price + output_tokens * self.output_price
        ) / 1_000_000


class ProviderConfig(BaseModel):
    """
    Registry entry describing one backend.

    Attributes:
        id: Registry key, e.g. "anthropic".
        name: Display name.
        base_url: Default API endpoint.
        api_key_env: Environment variable holding the credential ("" if none).
        default_model: Model used when the caller does not pick one.
        requires_api_key: False for local backends.
        models: Models the backend offers, in preference order.
    """

    id: str
    name: str
    base_url: str = ""
    api_key_env: str = ""
    default_model: str
    requires_api_key: bool = True
    models: tuple[ModelInfo, ...] = ()

    model_config = {"frozen": True}

    @property
    def has_free_tier(self) -> bool:
        return any(m.free_tier for m in self.models)

    def offers_tier(self, tier: ModelTier) -> bool:
        return any(m.tier == tier for m in self.models)


class ProviderInfo(BaseModel):
    """Row returned by ``ProviderRouter.list_providers``."""

    id: str
    name: str
    configured: bool
    available: bool
    models: int
    default_model: str
    free_tier: bool


class CurrentProvider(BaseModel):
    """The backend and model a plain ``chat()`` call would use."""

    id: str
    name: str
    model: str


class FreeTierModel(BaseModel):
    """A free-tier model together with the backend that offers it."""

    provider: str
    model: ModelInfo


# =============================================================================
# Router Statistics
# =============================================================================


class RouterStats(BaseModel):
    """Aggregate counters for one router instance."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    average_latency_ms: float = 0.0
