"""
Providers Package - backend adapters, registry, fallback ordering and router

This package contains the abstract adapter interface, the concrete adapters
(OpenAI-compatible, Azure OpenAI, Anthropic, Ollama, Fake), the static
provider registry, the fallback ordering engine and the ProviderRouter.

Reference Documents:
- GUIDELINES pp. 793-795: Repository pattern and ABC patterns
- GUIDELINES p. 953: @abstractmethod decorator usage
"""

from vibe_router.providers.anthropic import AnthropicAdapter
from vibe_router.providers.base import (
    ProviderAdapter,
    StreamCallback,
    provider_error_from_status,
    select_model_for_task,
)
from vibe_router.providers.fake import FakeAdapter, fake_provider_config
from vibe_router.providers.fallback import FallbackStrategy, order_candidates
from vibe_router.providers.ollama import OllamaAdapter
from vibe_router.providers.openai import AzureOpenAIAdapter, OpenAICompatibleAdapter
from vibe_router.providers.registry import (
    PROVIDER_ALIASES,
    PROVIDER_REGISTRY,
    AdapterRegistry,
    find_providers_for_model,
    get_provider_config,
    normalize_provider_id,
)
from vibe_router.providers.router import ProviderRouter, create_provider_router

__all__ = [
    # Adapter contract
    "ProviderAdapter",
    "StreamCallback",
    "provider_error_from_status",
    "select_model_for_task",
    # Adapters
    "AnthropicAdapter",
    "AzureOpenAIAdapter",
    "FakeAdapter",
    "OllamaAdapter",
    "OpenAICompatibleAdapter",
    "fake_provider_config",
    # Registry
    "PROVIDER_ALIASES",
    "PROVIDER_REGISTRY",
    "AdapterRegistry",
    "find_providers_for_model",
    "get_provider_config",
    "normalize_provider_id",
    # Routing
    "FallbackStrategy",
    "order_candidates",
    "ProviderRouter",
    "create_provider_router",
]
