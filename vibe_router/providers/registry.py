"""
Provider Registry

Static metadata for every known backend (``PROVIDER_REGISTRY``) and the
``AdapterRegistry`` that constructs adapters lazily and caches them for the
router's lifetime.

Registration order matters: it is the tie-breaker when the fallback
ordering engine ranks two backends equally.
"""

import threading
from typing import Callable, Optional

from vibe_router.core.exceptions import ConfigurationError
from vibe_router.models.chat import ModelInfo, ModelTier, ProviderConfig
from vibe_router.observability.logging import get_logger
from vibe_router.providers.base import ProviderAdapter

logger = get_logger(__name__)


# =============================================================================
# Static Registry
# =============================================================================

PROVIDER_REGISTRY: tuple[ProviderConfig, ...] = (
    ProviderConfig(
        id="openai",
        name="OpenAI",
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
        default_model="gpt-4o",
        models=(
            ModelInfo(
                id="gpt-4o",
                name="GPT-4o",
                tier=ModelTier.BALANCED,
                capabilities=("completion", "vision", "function-calling"),
                max_output=16384,
                input_price=2.50,
                output_price=10.00,
            ),
            ModelInfo(
                id="gpt-4o-mini",
                name="GPT-4o mini",
                tier=ModelTier.FAST,
                capabilities=("completion", "function-calling"),
                max_output=16384,
                input_price=0.15,
                output_price=0.60,
            ),
            ModelInfo(
                id="o3",
                name="o3",
                tier=ModelTier.REASONING,
                capabilities=("completion", "reasoning"),
                context_window=200_000,
                max_output=100_000,
                input_price=2.00,
                output_price=8.00,
            ),
        ),
    ),
    ProviderConfig(
        id="azure",
        name="Azure OpenAI",
        base_url="",
        api_key_env="AZURE_OPENAI_API_KEY",
        default_model="gpt-4o",
        models=(
            ModelInfo(
                id="gpt-4o",
                name="GPT-4o (Azure)",
                tier=ModelTier.BALANCED,
                capabilities=("completion", "vision", "function-calling"),
                input_price=2.50,
                output_price=10.00,
            ),
        ),
    ),
    ProviderConfig(
        id="anthropic",
        name="Anthropic",
        base_url="https://api.anthropic.com",
        api_key_env="ANTHROPIC_API_KEY",
        default_model="claude-sonnet-4-20250514",
        models=(
            ModelInfo(
                id="claude-sonnet-4-20250514",
                name="Claude Sonnet 4",
                tier=ModelTier.BALANCED,
                capabilities=("completion", "vision", "function-calling", "reasoning"),
                context_window=200_000,
                max_output=8192,
                input_price=3.00,
                output_price=15.00,
            ),
            ModelInfo(
                id="claude-opus-4-20250514",
                name="Claude Opus 4",
                tier=ModelTier.MAX,
                capabilities=("completion", "vision", "function-calling", "reasoning"),
                context_window=200_000,
                max_output=8192,
                input_price=15.00,
                output_price=75.00,
            ),
            ModelInfo(
                id="claude-3-5-haiku-20241022",
                name="Claude 3.5 Haiku",
                tier=ModelTier.FAST,
                capabilities=("completion", "function-calling"),
                context_window=200_000,
                max_output=8192,
                input_price=0.80,
                output_price=4.00,
            ),
        ),
    ),
    ProviderConfig(
        id="google",
        name="Google AI",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
        api_key_env="GOOGLE_API_KEY",
        default_model="gemini-2.5-flash",
        models=(
            ModelInfo(
                id="gemini-2.5-pro",
                name="Gemini 2.5 Pro",
                tier=ModelTier.MAX,
                capabilities=("completion", "vision", "reasoning"),
                context_window=1_000_000,
                max_output=65536,
                input_price=1.25,
                output_price=10.00,
            ),
            ModelInfo(
                id="gemini-2.5-flash",
                name="Gemini 2.5 Flash",
                tier=ModelTier.FAST,
                free_tier=True,
                capabilities=("completion", "vision"),
                context_window=1_000_000,
                max_output=65536,
            ),
        ),
    ),
    ProviderConfig(
        id="openrouter",
        name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
        api_key_env="OPENROUTER_API_KEY",
        default_model="qwen/qwen3-coder",
        models=(
            ModelInfo(
                id="qwen/qwen3-coder",
                name="Qwen3 Coder",
                tier=ModelTier.BALANCED,
                capabilities=("completion", "function-calling"),
                context_window=262_144,
                input_price=0.20,
                output_price=0.80,
            ),
            ModelInfo(
                id="deepseek/deepseek-chat-v3-0324:free",
                name="DeepSeek V3 (free)",
                tier=ModelTier.FAST,
                free_tier=True,
                capabilities=("completion",),
                context_window=163_840,
            ),
        ),
    ),
    ProviderConfig(
        id="minimax",
        name="MiniMax",
        base_url="https://api.minimax.io/v1",
        api_key_env="MINIMAX_API_KEY",
        default_model="MiniMax-M2.1",
        models=(
            ModelInfo(
                id="MiniMax-M2.1",
                name="MiniMax-M2.1",
                tier=ModelTier.BALANCED,
                capabilities=("completion", "reasoning", "function-calling"),
                context_window=200_000,
                max_output=16384,
                input_price=0.10,
                output_price=0.20,
            ),
            ModelInfo(
                id="MiniMax-M2.0",
                name="MiniMax-M2.0",
                tier=ModelTier.BALANCED,
                capabilities=("completion", "reasoning"),
                context_window=200_000,
                max_output=8192,
            ),
            ModelInfo(
                id="MiniMax-M1",
                name="MiniMax-M1",
                tier=ModelTier.FAST,
                capabilities=("completion",),
                context_window=128_000,
                max_output=4096,
            ),
        ),
    ),
    ProviderConfig(
        id="ollama",
        name="Ollama",
        base_url="http://localhost:11434",
        api_key_env="",
        default_model="llama3.1",
        requires_api_key=False,
        models=(
            ModelInfo(
                id="llama3.1",
                name="Llama 3.1",
                tier=ModelTier.BALANCED,
                free_tier=True,
                capabilities=("completion",),
            ),
            ModelInfo(
                id="qwen2.5-coder",
                name="Qwen 2.5 Coder",
                tier=ModelTier.FAST,
                free_tier=True,
                capabilities=("completion",),
            ),
        ),
    ),
    ProviderConfig(
        id="lmstudio",
        name="LM Studio",
        base_url="http://localhost:1234/v1",
        api_key_env="",
        default_model="local-model",
        requires_api_key=False,
        models=(
            ModelInfo(
                id="local-model",
                name="Loaded local model",
                tier=ModelTier.BALANCED,
                free_tier=True,
                capabilities=("completion",),
            ),
        ),
    ),
)


PROVIDER_ALIASES: dict[str, str] = {
    "claude": "anthropic",
    "gemini": "google",
    "local": "ollama",
    "or": "openrouter",
    "gpt": "openai",
    "azure-openai": "azure",
    "lm-studio": "lmstudio",
}


def get_provider_config(
    provider_id: str,
    registry: tuple[ProviderConfig, ...] = PROVIDER_REGISTRY,
) -> Optional[ProviderConfig]:
    for config in registry:
        if config.id == provider_id:
            return config
    return None


def normalize_provider_id(
    name: str,
    registry: tuple[ProviderConfig, ...] = PROVIDER_REGISTRY,
) -> str:
    """
    Lowercase, strip whitespace and resolve common aliases.

    A name that is already a backend id in ``registry`` is never treated as
    an alias.
    """
    normalized = "".join(name.lower().split())
    if get_provider_config(normalized, registry) is not None:
        return normalized
    return PROVIDER_ALIASES.get(normalized, normalized)


def find_providers_for_model(
    model_id: str,
    registry: tuple[ProviderConfig, ...] = PROVIDER_REGISTRY,
) -> list[str]:
    """Ids of every backend that lists ``model_id``, in registration order."""
    return [
        config.id
        for config in registry
        if any(model.id == model_id for model in config.models)
    ]


# =============================================================================
# Adapter Factories
# =============================================================================

AdapterFactory = Callable[[ProviderConfig, Optional[str]], ProviderAdapter]


def _openai_compatible(config: ProviderConfig, api_key: Optional[str]) -> ProviderAdapter:
    from vibe_router.providers.openai import OpenAICompatibleAdapter

    return OpenAICompatibleAdapter(config, api_key=api_key)


def _azure(config: ProviderConfig, api_key: Optional[str]) -> ProviderAdapter:
    from vibe_router.providers.openai import AzureOpenAIAdapter

    return AzureOpenAIAdapter(config, api_key=api_key)


def _anthropic(config: ProviderConfig, api_key: Optional[str]) -> ProviderAdapter:
    from vibe_router.providers.anthropic import AnthropicAdapter

    return AnthropicAdapter(config, api_key=api_key)


def _ollama(config: ProviderConfig, api_key: Optional[str]) -> ProviderAdapter:
    from vibe_router.providers.ollama import OllamaAdapter

    return OllamaAdapter(config, api_key=api_key)


DEFAULT_ADAPTER_FACTORIES: dict[str, AdapterFactory] = {
    "openai": _openai_compatible,
    "azure": _azure,
    "anthropic": _anthropic,
    "google": _openai_compatible,
    "openrouter": _openai_compatible,
    "minimax": _openai_compatible,
    "ollama": _ollama,
    "lmstudio": _openai_compatible,
}


# =============================================================================
# Adapter Registry
# =============================================================================


class AdapterRegistry:
    """
    Lazily constructed, cached adapters keyed by backend id.

    ``get`` is a get-or-create under a lock, so two concurrent first uses of
    the same backend share one adapter.

    Args:
        providers: Static registry entries, in registration order.
        factories: Backend id -> adapter constructor.
        key_lookup: Returns a user-stored API key for a backend id, if any.
    """

    def __init__(
        self,
        providers: tuple[ProviderConfig, ...] = PROVIDER_REGISTRY,
        factories: Optional[dict[str, AdapterFactory]] = None,
        key_lookup: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        self._providers = providers
        self._factories = dict(factories if factories is not None else DEFAULT_ADAPTER_FACTORIES)
        self._key_lookup = key_lookup or (lambda _provider_id: None)
        self._adapters: dict[str, ProviderAdapter] = {}
        self._lock = threading.Lock()

    @property
    def providers(self) -> tuple[ProviderConfig, ...]:
        return self._providers

    def provider_ids(self) -> list[str]:
        return [config.id for config in self._providers]

    def get_config(self, provider_id: str) -> Optional[ProviderConfig]:
        return get_provider_config(provider_id, self._providers)

    def normalize(self, name: str) -> str:
        """Resolve ``name`` to a backend id of this registry."""
        return normalize_provider_id(name, self._providers)

    def is_known(self, provider_id: str) -> bool:
        return self.get_config(provider_id) is not None

    def has_factory(self, provider_id: str) -> bool:
        return provider_id in self._factories

    def peek(self, provider_id: str) -> Optional[ProviderAdapter]:
        """The cached adapter, without constructing one."""
        with self._lock:
            return self._adapters.get(provider_id)

    def get(self, provider_id: str) -> ProviderAdapter:
        """
        Get the adapter for ``provider_id``, constructing it on first use.

        Raises:
            ConfigurationError: Unknown id or no factory for it.
        """
        with self._lock:
            adapter = self._adapters.get(provider_id)
            if adapter is not None:
                return adapter

            config = self.get_config(provider_id)
            factory = self._factories.get(provider_id)
            if config is None or factory is None:
                raise ConfigurationError(
                    f"Provider not found: {provider_id}", provider=provider_id
                )

            adapter = factory(config, self._key_lookup(provider_id))
            self._adapters[provider_id] = adapter
            logger.debug("adapter instantiated", provider=provider_id)
            return adapter
