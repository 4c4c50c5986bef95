"""
API Dependencies

FastAPI dependency functions for the API layer. Every dependency is a
factory that tests replace through ``app.dependency_overrides``.

Reference Documents:
- GUIDELINES: Sinha pp. 89-91 (Dependency injection patterns)
"""

from functools import lru_cache

from vibe_router.core.config import Settings
from vibe_router.core.config import get_settings as _get_settings
from vibe_router.providers.router import ProviderRouter, create_provider_router


def get_settings() -> Settings:
    """
    Get application settings.

    Pattern: Singleton with @lru_cache (from core.config)
    """
    return _get_settings()


@lru_cache
def get_provider_router() -> ProviderRouter:
    """
    Get the process-wide provider router.

    Built once from settings; breaker state and stats live as long as the
    process.
    """
    return create_provider_router(get_settings())


__all__ = [
    "get_settings",
    "get_provider_router",
]
