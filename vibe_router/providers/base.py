"""
Provider Adapter Base Interface

This module defines the abstract base class every backend adapter
implements, plus the helpers shared by the concrete adapters: task-based
model selection and HTTP status classification.

Design Pattern:
- Ports and Adapters (Hexagonal Architecture)
- ProviderAdapter serves as the "port" (interface)
- Concrete adapters (openai.py, anthropic.py, ollama.py, fake.py) serve as
  "adapters"

Reference Documents:
- GUIDELINES pp. 793-795: Repository pattern and ABC patterns
- GUIDELINES p. 953: @abstractmethod decorator usage
- GUIDELINES p. 2149: Iterator protocol for streaming responses

Every adapter failure surfaces as a ProviderError whose ProviderErrorKind is
chosen here at the boundary; the router never inspects error strings.
"""

import os
import time
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Optional, Sequence

from vibe_router.core.exceptions import (
    AuthenticationError,
    ModelNotFoundError,
    ProviderError,
    ProviderErrorKind,
    RateLimitError,
)
from vibe_router.models.chat import (
    ChatMessage,
    ChatRequestOptions,
    ModelInfo,
    ModelTier,
    ProviderConfig,
    ProviderResponse,
    Usage,
)

StreamCallback = Callable[[str], None]


class ProviderAdapter(ABC):
    """
    Abstract base class for LLM backend adapters.

    Subclasses implement ``chat`` and ``_stream_deltas``; configuration,
    credentials and model metadata are handled here.

    Args:
        config: Registry entry for the backend.
        api_key: Explicit credential (e.g. from the user preference file).
            Falls back to the environment variable named in ``config``.

    Example:
        >>> adapter = registry.get("anthropic")
        >>> if adapter.is_configured():
        ...     response = await adapter.chat(messages, ChatRequestOptions())
    """

    def __init__(self, config: ProviderConfig, api_key: Optional[str] = None) -> None:
        self._config = config
        self._api_key = api_key

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def id(self) -> str:
        return self._config.id

    def get_config(self) -> ProviderConfig:
        return self._config

    def get_models(self) -> list[ModelInfo]:
        return list(self._config.models)

    def get_default_model(self) -> str:
        return self._config.default_model

    def get_model_info(self, model_id: str) -> Optional[ModelInfo]:
        for model in self._config.models:
            if model.id == model_id:
                return model
        return None

    def get_api_key(self) -> Optional[str]:
        """Explicit key first, then the backend's environment variable."""
        if self._api_key:
            return self._api_key
        if not self._config.api_key_env:
            return None
        value = os.environ.get(self._config.api_key_env, "").strip()
        return value or None

    def set_api_key(self, api_key: str) -> None:
        """Replace the explicit credential; subclasses drop cached clients."""
        self._api_key = api_key

    def is_configured(self) -> bool:
        """True when no key is needed or one is available."""
        if not self._config.requires_api_key:
            return True
        return self.get_api_key() is not None

    # =========================================================================
    # Chat
    # =========================================================================

    @abstractmethod
    async def chat(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> ProviderResponse:
        """
        Generate a complete response.

        ``options.model`` is a bare model id for this backend, or None for
        the backend default.

        Raises:
            ProviderError: On any backend failure, with its kind set.
        """
        ...

    @abstractmethod
    def _stream_deltas(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> AsyncIterator[str]:
        """Yield raw text deltas from the backend."""
        ...

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        callback: Optional[StreamCallback] = None,
        options: Optional[ChatRequestOptions] = None,
    ) -> AsyncIterator[str]:
        """
        Stream a response as text deltas.

        The sequence is lazy, finite and not restartable. Each non-empty
        delta is passed to ``callback`` (if given) and yielded. Abandoning
        iteration cancels the stream.
        """
        async for delta in self._stream_deltas(messages, options or ChatRequestOptions()):
            if not delta:
                continue
            if callback is not None:
                callback(delta)
            yield delta

    # =========================================================================
    # Helpers for subclasses
    # =========================================================================

    def _resolve_model(self, options: ChatRequestOptions) -> str:
        return options.model or self.get_default_model()

    def _build_response(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        output_tokens: int,
        started: float,
    ) -> ProviderResponse:
        """Assemble a response, pricing it from the model table."""
        info = self.get_model_info(model)
        cost = info.estimate_cost(prompt_tokens, output_tokens) if info else 0.0
        return ProviderResponse(
            content=content,
            usage=Usage(
                prompt_tokens=prompt_tokens,
                output_tokens=output_tokens,
                total_tokens=prompt_tokens + output_tokens,
                cost=cost,
            ),
            latency_ms=(time.monotonic() - started) * 1000,
            model=model,
            provider=self.id,
        )


# =============================================================================
# Error classification
# =============================================================================


def provider_error_from_status(
    provider: str,
    status_code: int,
    message: str,
    model: Optional[str] = None,
    retry_after: Optional[float] = None,
) -> ProviderError:
    """
    Map an HTTP status from a backend to a classified ProviderError.

    401/403 -> authentication, 404 -> model not found, 408 -> timeout,
    429 -> rate limit, other 4xx -> bad request, 5xx -> server.
    """
    if status_code in (401, 403):
        return AuthenticationError(provider, model)
    if status_code == 404 and model:
        return ModelNotFoundError(provider, model)
    if status_code == 429:
        return RateLimitError(provider, model, retry_after)

    if status_code == 408:
        kind = ProviderErrorKind.TIMEOUT
    elif status_code >= 500:
        kind = ProviderErrorKind.SERVER
    elif 400 <= status_code < 500:
        kind = ProviderErrorKind.BAD_REQUEST
    else:
        kind = ProviderErrorKind.UNKNOWN
    return ProviderError(
        message, provider=provider, kind=kind, model=model, status_code=status_code
    )


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


# =============================================================================
# Task-based model selection
# =============================================================================


def select_model_for_task(task: str, models: Sequence[ModelInfo]) -> Optional[ModelInfo]:
    """
    Pick a model for a free-form task label.

    - "reason" / "think" / "plan": a reasoning-tier model
    - "fast" / "simple" / "quick": a fast model, free-tier first
    - "code" / "function": a balanced model
    - otherwise a balanced model, else the first model
    """
    if not models:
        return None
    label = task.lower()

    def first(predicate: Callable[[ModelInfo], bool]) -> Optional[ModelInfo]:
        return next((m for m in models if predicate(m)), None)

    if any(word in label for word in ("reason", "think", "plan")):
        reasoning = first(
            lambda m: m.tier == ModelTier.REASONING and "reasoning" in m.capabilities
        )
        if reasoning:
            return reasoning

    if any(word in label for word in ("fast", "simple", "quick")):
        fast = first(lambda m: m.tier == ModelTier.FAST and m.free_tier) or first(
            lambda m: m.tier == ModelTier.FAST
        )
        if fast:
            return fast

    if any(word in label for word in ("code", "function")):
        balanced = first(lambda m: m.tier == ModelTier.BALANCED)
        if balanced:
            return balanced

    return first(lambda m: m.tier == ModelTier.BALANCED) or models[0]
