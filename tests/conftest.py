"""
Pytest configuration and shared fixtures.

Reference Documents:
- GUIDELINES pp. 155-157: "high and low gear" testing philosophy
- GUIDELINES pp. 157: FakeRepository pattern using duck typing

Fixtures here never touch the network: backends are FakeAdapters, time is a
FakeClock, and backoff sleeps are recorded instead of awaited.
"""

from typing import Callable, Optional

import pytest

from vibe_router.core.config import get_settings
from vibe_router.models.chat import ChatMessage, ModelTier, ProviderConfig
from vibe_router.providers.fake import FakeAdapter, fake_provider_config
from vibe_router.providers.router import ProviderRouter
from vibe_router.resilience.circuit_breaker import CircuitBreakerConfig, CircuitBreakerRegistry
from vibe_router.resilience.executor import ResilienceExecutor

from tests.doubles import FakeClock, RecordingSleep

# Credentials the real registry looks for; cleared so tests see a clean env.
PROVIDER_KEY_ENV_VARS = [
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GOOGLE_API_KEY",
    "OPENROUTER_API_KEY",
    "MINIMAX_API_KEY",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "OLLAMA_HOST",
]


# =============================================================================
# Environment
# =============================================================================


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Isolate every test from real credentials and the user's ~/.vibe."""
    for name in PROVIDER_KEY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VIBE_CONFIG_DIR", str(tmp_path / "vibe-config"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def messages() -> list[ChatMessage]:
    return [ChatMessage(role="user", content="Hello")]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def executor(recording_sleep: RecordingSleep) -> ResilienceExecutor:
    return ResilienceExecutor(sleep=recording_sleep)


@pytest.fixture
def make_router(executor: ResilienceExecutor, fake_clock: FakeClock) -> Callable[..., ProviderRouter]:
    """
    Build a ProviderRouter over FakeAdapters.

    Each adapter's own config becomes a registry entry, in the order given.

    Example:
        >>> router = make_router([primary, secondary], default_provider="primary")
    """

    def _make(
        adapters: list[FakeAdapter],
        default_provider: Optional[str] = None,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        **kwargs,
    ) -> ProviderRouter:
        providers: tuple[ProviderConfig, ...] = tuple(a.get_config() for a in adapters)
        factories = {
            adapter.id: (lambda config, api_key, adapter=adapter: adapter)
            for adapter in adapters
        }
        kwargs.setdefault("jitter", False)
        return ProviderRouter(
            providers=providers,
            factories=factories,
            breakers=CircuitBreakerRegistry(breaker_config, clock=fake_clock),
            executor=executor,
            default_provider=default_provider or adapters[0].id,
            **kwargs,
        )

    return _make


@pytest.fixture
def fake_adapter_factory() -> Callable[..., FakeAdapter]:
    """Shorthand for a FakeAdapter with its own fake registry entry."""

    def _make(
        provider_id: str,
        tier: ModelTier = ModelTier.BALANCED,
        requires_api_key: bool = False,
        free_tier: bool = False,
        **adapter_kwargs,
    ) -> FakeAdapter:
        config = fake_provider_config(
            provider_id,
            default_model=f"{provider_id}-model",
            requires_api_key=requires_api_key,
            free_tier=free_tier,
            tier=tier,
        )
        return FakeAdapter(config, **adapter_kwargs)

    return _make
