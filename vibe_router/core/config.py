"""
Core configuration module for the provider routing core.

This module provides centralized configuration management using Pydantic
Settings. All configuration is loaded from environment variables with the
VIBE_ prefix.

Backend API keys are not settings: each backend reads its own
conventional variable (OPENAI_API_KEY, ANTHROPIC_API_KEY, ...) as declared
in the provider registry, or a key stored in the user preference file.

Reference:
- GUIDELINES: Sinha pp. 193-195 - Pydantic BaseSettings pattern
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


FallbackStrategyName = Literal[
    "free-first",
    "paid-first",
    "local-first",
    "speed-first",
    "quality-first",
    "balanced",
]


class Settings(BaseSettings):
    """
    Settings loaded from environment variables.

    All fields use the VIBE_ prefix for environment variables.
    Example: VIBE_MAX_RETRIES=3
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================
    service_name: str = Field(
        default="vibe-router",
        description="Name of the service for logging and identification",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    config_dir: Path = Field(
        default=Path.home() / ".vibe",
        description="Directory holding the persisted user preference file",
    )

    # =========================================================================
    # Routing Defaults
    # =========================================================================
    default_provider: str = Field(
        default="anthropic",
        description="Backend used when neither the request nor the user picks one",
    )
    default_model: Optional[str] = Field(
        default=None,
        description="Model for the default backend; unset means that backend's own default",
    )
    fallback_strategy: FallbackStrategyName = Field(
        default="balanced",
        description="Ordering of alternate backends after the primary fails",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries per fallback backend after its first attempt",
    )

    # =========================================================================
    # Resilience Configuration
    # =========================================================================
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=600.0,
        description="Timeout for a single backend attempt",
    )
    retry_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Exponential backoff base between attempts",
    )
    retry_base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay unit multiplied by backoff_factor**attempt",
    )
    retry_jitter: bool = Field(
        default=True,
        description="Add up to one second of random jitter to each backoff",
    )

    # =========================================================================
    # Circuit Breaker Configuration
    # =========================================================================
    circuit_breaker_failure_threshold: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Consecutive failures before a backend circuit opens",
    )
    circuit_breaker_success_threshold: int = Field(
        default=2,
        ge=1,
        le=100,
        description="Consecutive half-open successes before the circuit closes",
    )
    circuit_breaker_reset_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=3600.0,
        description="Cooldown before an open circuit admits a probe",
    )

    model_config = {
        "env_prefix": "VIBE_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize the log level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("default_provider")
    @classmethod
    def validate_default_provider(cls, v: str) -> str:
        """Provider ids are lowercase registry keys."""
        if not v.strip():
            raise ValueError("default_provider must not be empty")
        return v.strip().lower()


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses functools.lru_cache to ensure only one Settings instance is created.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
