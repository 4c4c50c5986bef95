"""Provider Router - routes chat requests across LLM backends.

The router resolves which backend serves a request, makes one guarded
attempt against it, and on a transient failure walks the remaining
configured backends in the order chosen by the active FallbackStrategy.

Resolution order for the target backend:
1. An explicit ``"backend/model"`` override in ``options.model``
2. A bare model id listed by exactly one registry entry
3. The user-selected backend from the preference file
4. The configured default backend

Every attempt goes through the ResilienceExecutor, gated by the
backend's CircuitBreaker. The primary attempt gets no retries; each
fallback candidate gets ``max_retries``.

The router never holds a lock across an ``await``.
"""

import os
import threading
from typing import TYPE_CHECKING, AsyncIterator, Optional, Sequence, Union

from vibe_router.core.exceptions import (
    AllProvidersFailedError,
    ConfigurationError,
    OperationTimeoutError,
    ProviderError,
    ValidationError,
    is_retryable,
)
from vibe_router.models.chat import (
    ChatMessage,
    ChatRequestOptions,
    CurrentProvider,
    FreeTierModel,
    ProviderConfig,
    ProviderInfo,
    ProviderResponse,
    RouterStats,
)
from vibe_router.observability.logging import correlation_id_context, get_logger
from vibe_router.observability.metrics import (
    record_fallback_attempt,
    record_fallback_success,
    record_provider_error,
    record_provider_latency,
    record_provider_request,
    record_request_cost,
    record_token_usage,
)
from vibe_router.providers.base import ProviderAdapter, StreamCallback
from vibe_router.providers.base import select_model_for_task as _select_model
from vibe_router.providers.fallback import FallbackStrategy, order_candidates
from vibe_router.providers.registry import (
    PROVIDER_REGISTRY,
    AdapterFactory,
    AdapterRegistry,
    find_providers_for_model,
)
from vibe_router.resilience.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitBreakerRegistry,
    CircuitBreakerStats,
)
from vibe_router.resilience.executor import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    ResilienceExecutor,
    ResilienceOptions,
)
from vibe_router.services.preferences import PreferenceStore, UserPreferences
from vibe_router.services.stats import StatsTracker

if TYPE_CHECKING:
    from vibe_router.core.config import Settings

logger = get_logger(__name__)

DEFAULT_PROVIDER = "anthropic"
DEFAULT_MAX_RETRIES = 2


def _error_kind(error: BaseException) -> str:
    """Metric label for a failed attempt."""
    if isinstance(error, ProviderError):
        return error.kind.value
    if isinstance(error, OperationTimeoutError):
        return "timeout"
    if isinstance(error, CircuitBreakerError):
        return "circuit_open"
    return "unknown"


def _should_fall_back(error: BaseException) -> bool:
    """Transient failures and open circuits send the request to fallback."""
    return isinstance(error, CircuitBreakerError) or is_retryable(error)


def _stop_retrying(error: BaseException) -> bool:
    """Only transient failures earn another attempt on the same backend."""
    return isinstance(error, CircuitBreakerError) or not is_retryable(error)


class ProviderRouter:
    """Routes chat requests to LLM backends with fallback and circuit breaking.

    Adapters are built lazily by an AdapterRegistry; breakers are created
    per backend on first use. Stats and breaker state live for the
    router's lifetime.

    Attributes:
        adapters: Lazily constructed backend adapters.
        breakers: One circuit breaker per backend id.

    Example:
        >>> router = ProviderRouter(preference_store=PreferenceStore(Path("~/.vibe")))
        >>> response = await router.chat(
        ...     [ChatMessage(role="user", content="hi")],
        ...     ChatRequestOptions(model="anthropic/claude-sonnet-4-20250514"),
        ... )
        >>> response.provider
        'anthropic'
    """

    def __init__(
        self,
        providers: tuple[ProviderConfig, ...] = PROVIDER_REGISTRY,
        factories: Optional[dict[str, AdapterFactory]] = None,
        preference_store: Optional[PreferenceStore] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
        executor: Optional[ResilienceExecutor] = None,
        default_provider: str = DEFAULT_PROVIDER,
        default_model: Optional[str] = None,
        fallback_strategy: Union[FallbackStrategy, str] = FallbackStrategy.BALANCED,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
        jitter: bool = True,
    ) -> None:
        """Initialize the router.

        Args:
            providers: Registry entries in registration order.
            factories: Backend id -> adapter constructor (defaults to the
                built-in adapters).
            preference_store: Where user selections and keys persist; None
                keeps them in memory only.
            breakers: Circuit breaker registry (default thresholds if None).
            executor: Retry/timeout driver (injectable for tests).
            default_provider: Backend used when nothing else selects one.
            default_model: Model for the default backend; None means the
                backend's own default.
            fallback_strategy: Ordering of fallback candidates.
            max_retries: Retries per fallback candidate after its first try.
            timeout_seconds: Per-attempt timeout.
            backoff_factor: Exponential base between retries.
            base_delay_seconds: Backoff delay unit.
            jitter: Add up to one second of random delay to each backoff.

        Raises:
            ConfigurationError: Unknown default backend.
            ValueError: Unknown strategy or negative max_retries.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self._store = preference_store
        self._preferences = preference_store.load() if preference_store else UserPreferences()
        self.adapters = AdapterRegistry(providers, factories, key_lookup=self._lookup_api_key)
        self.breakers = breakers or CircuitBreakerRegistry()
        self._executor = executor or ResilienceExecutor()
        self._stats = StatsTracker()
        self._lock = threading.Lock()

        normalized_default = self.adapters.normalize(default_provider)
        if not self.adapters.is_known(normalized_default):
            raise ConfigurationError(
                f"Provider not found: {default_provider}", provider=default_provider
            )
        self._default_provider = normalized_default
        self._default_model = default_model
        self._strategy = FallbackStrategy(fallback_strategy)
        self._max_retries = max_retries
        self._timeout_seconds = timeout_seconds
        self._backoff_factor = backoff_factor
        self._base_delay_seconds = base_delay_seconds
        self._jitter = jitter

        self._discard_unknown_preference()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def default_provider(self) -> str:
        return self._default_provider

    @property
    def fallback_strategy(self) -> FallbackStrategy:
        return self._strategy

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def preferences(self) -> UserPreferences:
        """Copy of the persisted user selection."""
        with self._lock:
            return self._preferences.model_copy(deep=True)

    def set_fallback_strategy(self, strategy: Union[FallbackStrategy, str]) -> None:
        """Switch the fallback ordering; unknown names raise ValueError."""
        self._strategy = FallbackStrategy(strategy)

    # =========================================================================
    # Chat
    # =========================================================================

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        options: Optional[ChatRequestOptions] = None,
    ) -> ProviderResponse:
        """Send a chat request, falling back to other backends when needed.

        Args:
            messages: Conversation, oldest first.
            options: Per-request parameters and optional model override.

        Returns:
            The response of the first backend that succeeded.

        Raises:
            ConfigurationError: Target backend has no adapter.
            ProviderError: Non-retryable failure of the target backend.
            AllProvidersFailedError: Primary and every fallback failed.
        """
        options = options or ChatRequestOptions()
        provider_id, model = self._resolve_target(options)
        adapter = self.adapters.get(provider_id)
        request = options.model_copy(update={"model": model})

        with correlation_id_context():
            try:
                response = await self._attempt(adapter, messages, request, retries=0)
            except Exception as e:
                if not _should_fall_back(e):
                    self._stats.record_failure()
                    raise
                logger.warning(
                    "primary provider failed, falling back",
                    provider=provider_id,
                    model=model,
                    error=str(e),
                    strategy=self._strategy.value,
                )
                return await self.chat_with_fallback(
                    messages, options, exclude_provider=provider_id
                )

            self._stats.record_success(response)
            return response

    async def chat_with_fallback(
        self,
        messages: Sequence[ChatMessage],
        options: Optional[ChatRequestOptions] = None,
        exclude_provider: Optional[str] = None,
    ) -> ProviderResponse:
        """Try configured backends in strategy order until one succeeds.

        Each candidate uses its own default model and gets up to
        ``max_retries + 1`` attempts. A non-retryable failure or an open
        circuit moves on to the next candidate.

        Raises:
            AllProvidersFailedError: Every candidate failed, or none was
                configured. ``last_error`` is the last concrete failure (an
                open circuit only when nothing else failed) and also the
                ``__cause__``.
        """
        request = (options or ChatRequestOptions()).model_copy(update={"model": None})
        candidates = [
            config
            for config in self.adapters.providers
            if config.id != exclude_provider and self.is_provider_configured(config.id)
        ]
        ordered = order_candidates(candidates, self._strategy, self.is_provider_configured)

        last_error: Optional[BaseException] = None
        provider_errors: dict[str, str] = {}

        for config in ordered:
            record_fallback_attempt(self._strategy.value, config.id)
            try:
                adapter = self.adapters.get(config.id)
                response = await self._attempt(
                    adapter, messages, request, retries=self._max_retries
                )
            except Exception as e:
                # An open circuit is a skip, not a failure of its own.
                if last_error is None or not isinstance(e, CircuitBreakerError):
                    last_error = e
                provider_errors[config.id] = str(e)
                logger.warning(
                    "fallback provider failed",
                    provider=config.id,
                    error=str(e),
                    retryable=is_retryable(e),
                )
                continue

            record_fallback_success(self._strategy.value, config.id)
            logger.info("fallback provider succeeded", provider=config.id)
            self._stats.record_success(response)
            return response

        self._stats.record_failure()
        logger.error(
            "all providers failed",
            attempted=list(provider_errors),
            excluded=exclude_provider,
        )
        raise AllProvidersFailedError(last_error, provider_errors) from last_error

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        callback: Optional[StreamCallback] = None,
        options: Optional[ChatRequestOptions] = None,
    ) -> AsyncIterator[str]:
        """Stream text deltas from the resolved backend.

        Uses the same resolution as ``chat`` but a single backend and no
        fallback: a failure propagates to the caller as-is. Stop iterating
        to cancel.
        """
        options = options or ChatRequestOptions()
        provider_id, model = self._resolve_target(options)
        adapter = self.adapters.get(provider_id)
        request = options.model_copy(update={"model": model})

        async for delta in adapter.stream_chat(messages, callback, request):
            yield delta

    async def complete(
        self,
        prompt: str,
        options: Optional[ChatRequestOptions] = None,
    ) -> ProviderResponse:
        """Single-prompt convenience wrapper around ``chat``."""
        return await self.chat([ChatMessage(role="user", content=prompt)], options)

    async def _attempt(
        self,
        adapter: ProviderAdapter,
        messages: Sequence[ChatMessage],
        request: ChatRequestOptions,
        retries: int,
    ) -> ProviderResponse:
        model = request.model or adapter.get_default_model()
        options = ResilienceOptions(
            retries=retries,
            timeout_seconds=self._timeout_seconds,
            backoff_factor=self._backoff_factor,
            jitter=self._jitter,
            base_delay_seconds=self._base_delay_seconds,
            breaker=self.breakers.get(adapter.id),
            is_terminal=_stop_retrying,
        )

        try:
            response = await self._executor.execute(
                f"chat:{adapter.id}",
                lambda: adapter.chat(messages, request),
                options,
            )
        except Exception as e:
            record_provider_request(adapter.id, model, "error")
            record_provider_error(adapter.id, _error_kind(e))
            raise

        record_provider_request(adapter.id, response.model, "success")
        record_provider_latency(adapter.id, response.model, response.latency_ms / 1000)
        record_token_usage(adapter.id, response.model, "prompt", response.usage.prompt_tokens)
        record_token_usage(adapter.id, response.model, "output", response.usage.output_tokens)
        record_request_cost(adapter.id, response.model, response.usage.cost)
        return response

    # =========================================================================
    # Resolution
    # =========================================================================

    def _resolve_target(self, options: ChatRequestOptions) -> tuple[str, str]:
        """Return (backend id, model id) for a request."""
        requested = options.model
        current = self._current_provider_id()

        if requested:
            if "/" in requested:
                prefix, bare = requested.split("/", 1)
                provider_id = self.adapters.normalize(prefix)
                if self.adapters.is_known(provider_id) and bare:
                    return provider_id, bare

            owners = find_providers_for_model(requested, self.adapters.providers)
            if len(owners) == 1:
                return owners[0], requested
            if current in owners or not owners:
                return current, requested
            return owners[0], requested

        return current, self._current_model(current)

    def _current_provider_id(self) -> str:
        with self._lock:
            return self._preferences.provider or self._default_provider

    def _current_model(self, provider_id: str) -> str:
        with self._lock:
            preferred_model = self._preferences.model
            selected = self._preferences.provider or self._default_provider
        if preferred_model and provider_id == selected:
            return preferred_model
        if provider_id == self._default_provider and self._default_model:
            return self._default_model
        config = self.adapters.get_config(provider_id)
        if config is None:
            raise ConfigurationError(f"Provider not found: {provider_id}", provider=provider_id)
        return config.default_model

    def _lookup_api_key(self, provider_id: str) -> Optional[str]:
        with self._lock:
            return self._preferences.api_keys.get(provider_id)

    def _discard_unknown_preference(self) -> None:
        provider = self._preferences.provider
        if provider is None:
            return
        normalized = self.adapters.normalize(provider)
        if self.adapters.is_known(normalized):
            self._preferences.provider = normalized
            return
        logger.warning("ignoring unknown provider in preferences", provider=provider)
        self._preferences.provider = None
        self._preferences.model = None

    # =========================================================================
    # Provider Information
    # =========================================================================

    def is_provider_configured(self, provider_id: str) -> bool:
        """True when the backend can be called: an adapter exists and it
        needs no key or has one (preference file or environment)."""
        config = self.adapters.get_config(provider_id)
        if config is None or not self.adapters.has_factory(provider_id):
            return False

        adapter = self.adapters.peek(provider_id)
        if adapter is not None:
            return adapter.is_configured()

        if not config.requires_api_key:
            return True
        if self._lookup_api_key(provider_id):
            return True
        return bool(config.api_key_env and _env_present(config.api_key_env))

    def list_providers(self) -> list[ProviderInfo]:
        return [
            ProviderInfo(
                id=config.id,
                name=config.name,
                configured=self.is_provider_configured(config.id),
                available=self.adapters.has_factory(config.id),
                models=len(config.models),
                default_model=config.default_model,
                free_tier=config.has_free_tier,
            )
            for config in self.adapters.providers
        ]

    def get_current_provider(self) -> CurrentProvider:
        provider_id = self._current_provider_id()
        config = self.adapters.get_config(provider_id)
        if config is None:
            raise ConfigurationError(f"Provider not found: {provider_id}", provider=provider_id)
        return CurrentProvider(
            id=config.id, name=config.name, model=self._current_model(provider_id)
        )

    def select_model_for_task(self, task: str) -> str:
        """Pick a model of the current backend for a task label."""
        provider_id = self._current_provider_id()
        config = self.adapters.get_config(provider_id)
        chosen = _select_model(task, config.models) if config else None
        return chosen.id if chosen else self._current_model(provider_id)

    def get_free_tier_models(self) -> list[FreeTierModel]:
        return [
            FreeTierModel(provider=config.id, model=model)
            for config in self.adapters.providers
            for model in config.models
            if model.free_tier
        ]

    def get_local_providers(self) -> list[str]:
        return [config.id for config in self.adapters.providers if not config.requires_api_key]

    def get_configured_providers(self) -> list[str]:
        return [
            config.id
            for config in self.adapters.providers
            if self.is_provider_configured(config.id)
        ]

    # =========================================================================
    # Preferences
    # =========================================================================

    def set_provider(self, name: str) -> CurrentProvider:
        """Select a backend (aliases accepted) and its default model.

        Raises:
            ConfigurationError: Unknown backend; nothing is changed.
        """
        provider_id = self.adapters.normalize(name)
        config = self.adapters.get_config(provider_id)
        if config is None:
            raise ConfigurationError(f"Provider not found: {name}", provider=name)

        with self._lock:
            self._preferences.provider = provider_id
            self._preferences.model = config.default_model
        self._persist()
        logger.info("provider selected", provider=provider_id, model=config.default_model)
        return self.get_current_provider()

    def set_model(self, model: str) -> CurrentProvider:
        """Select a model as ``"backend/model"`` or as a bare registry id.

        A bare id offered by several backends stays on the current backend
        when it is one of them.

        Raises:
            ConfigurationError: Unknown backend or model; nothing is changed.
        """
        provider_id: Optional[str] = None
        model_id = model.strip()

        if "/" in model_id:
            prefix, bare = model_id.split("/", 1)
            candidate = self.adapters.normalize(prefix)
            if self.adapters.is_known(candidate) and bare:
                provider_id, model_id = candidate, bare

        if provider_id is None:
            owners = find_providers_for_model(model_id, self.adapters.providers)
            if not owners:
                raise ConfigurationError(f"Model not found: {model}")
            current = self._current_provider_id()
            provider_id = current if current in owners else owners[0]

        with self._lock:
            self._preferences.provider = provider_id
            self._preferences.model = model_id
        self._persist()
        logger.info("model selected", provider=provider_id, model=model_id)
        return self.get_current_provider()

    def set_api_key(self, provider: str, api_key: str) -> None:
        """Store a key for a backend and hand it to a live adapter.

        Raises:
            ConfigurationError: Unknown backend; nothing is changed.
            ValidationError: Blank key.
        """
        provider_id = self.adapters.normalize(provider)
        if not self.adapters.is_known(provider_id):
            raise ConfigurationError(f"Provider not found: {provider}", provider=provider)
        if not api_key or not api_key.strip():
            raise ValidationError("API key must not be empty", field="api_key")

        key = api_key.strip()
        with self._lock:
            self._preferences.api_keys[provider_id] = key
        self._persist()

        adapter = self.adapters.peek(provider_id)
        if adapter is not None:
            adapter.set_api_key(key)
        logger.info("api key stored", provider=provider_id)

    def _persist(self) -> None:
        if self._store is None:
            return
        with self._lock:
            snapshot = self._preferences.model_copy(deep=True)
        self._store.save(snapshot)

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self) -> RouterStats:
        return self._stats.snapshot()

    def reset_stats(self) -> None:
        self._stats.reset()

    def get_circuit_stats(self) -> dict[str, CircuitBreakerStats]:
        return self.breakers.get_all_stats()


def _env_present(name: str) -> bool:
    return bool(os.environ.get(name, "").strip())


def create_provider_router(settings: "Settings") -> ProviderRouter:
    """Create a provider router from settings.

    Args:
        settings: Application settings (routing defaults, resilience and
            breaker thresholds, preference directory).

    Returns:
        Configured ProviderRouter instance.
    """
    breakers = CircuitBreakerRegistry(
        CircuitBreakerConfig(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            success_threshold=settings.circuit_breaker_success_threshold,
            reset_timeout_seconds=settings.circuit_breaker_reset_timeout_seconds,
        )
    )
    router = ProviderRouter(
        preference_store=PreferenceStore(settings.config_dir),
        breakers=breakers,
        default_provider=settings.default_provider,
        default_model=settings.default_model,
        fallback_strategy=settings.fallback_strategy,
        max_retries=settings.max_retries,
        timeout_seconds=settings.request_timeout_seconds,
        backoff_factor=settings.retry_backoff_factor,
        base_delay_seconds=settings.retry_base_delay_seconds,
        jitter=settings.retry_jitter,
    )

    configured = router.get_configured_providers()
    logger.info(
        "provider router initialized",
        current=router.get_current_provider().id,
        configured=configured,
        strategy=router.fallback_strategy.value,
    )
    if not configured:
        logger.error(
            "no LLM providers configured; set an API key environment variable "
            "or run a local backend"
        )
    return router
