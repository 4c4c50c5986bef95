"""
Models Package - value objects for the routing core.
"""

from vibe_router.models.chat import (
    ChatMessage,
    ChatRequestOptions,
    CurrentProvider,
    FreeTierModel,
    ModelInfo,
    ModelTier,
    ProviderConfig,
    ProviderInfo,
    ProviderResponse,
    RouterStats,
    Usage,
)

__all__ = [
    "ChatMessage",
    "ChatRequestOptions",
    "CurrentProvider",
    "FreeTierModel",
    "ModelInfo",
    "ModelTier",
    "ProviderConfig",
    "ProviderInfo",
    "ProviderResponse",
    "RouterStats",
    "Usage",
]
