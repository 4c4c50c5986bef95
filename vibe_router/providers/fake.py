"""
Fake Provider Adapter - Test Double Implementation

A ProviderAdapter that makes no network calls. Outcomes can be scripted
per call, so router behaviour (retries, fallback, circuit breaking) can be
exercised deterministically.

Pattern: FakeRepository (GUIDELINES p. 157)
This is NOT mocking - it implements the adapter contract with real behaviour.
It is also usable for local development without API keys.
"""

import asyncio
import time
from typing import AsyncIterator, Optional, Sequence, Union

from vibe_router.models.chat import (
    ChatMessage,
    ChatRequestOptions,
    ModelInfo,
    ModelTier,
    ProviderConfig,
    ProviderResponse,
)
from vibe_router.providers.base import ProviderAdapter

Outcome = Union[str, BaseException]

DEFAULT_RESPONSE = "Fake response for testing"


def fake_provider_config(
    provider_id: str = "fake",
    default_model: str = "fake-model",
    requires_api_key: bool = False,
    free_tier: bool = False,
    tier: ModelTier = ModelTier.BALANCED,
    input_price: float = 0.0,
    output_price: float = 0.0,
    extra_models: Sequence[ModelInfo] = (),
) -> ProviderConfig:
    """Build a registry entry for a fake backend with one default model."""
    default = ModelInfo(
        id=default_model,
        name=default_model,
        tier=tier,
        free_tier=free_tier,
        input_price=input_price,
        output_price=output_price,
    )
    return ProviderConfig(
        id=provider_id,
        name=provider_id.title(),
        api_key_env=f"{provider_id.upper()}_API_KEY" if requires_api_key else "",
        default_model=default_model,
        requires_api_key=requires_api_key,
        models=(default, *extra_models),
    )


class FakeAdapter(ProviderAdapter):
    """
    Scriptable fake backend.

    Each ``chat`` call consumes the next entry of ``outcomes``: a string is
    returned as the response content, an exception is raised. Once the
    script is exhausted every call returns ``response_content``.

    Attributes:
        chat_calls: (messages, options) of every chat call, in order.
        stream_calls: (messages, options) of every stream call, in order.

    Example:
        >>> adapter = FakeAdapter(
        ...     fake_provider_config("primary"),
        ...     outcomes=[ProviderError("down", "primary", ProviderErrorKind.SERVER)],
        ... )
        >>> await adapter.chat(messages, ChatRequestOptions())  # raises
        >>> await adapter.chat(messages, ChatRequestOptions())  # succeeds
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        api_key: Optional[str] = None,
        outcomes: Optional[Sequence[Outcome]] = None,
        response_content: str = DEFAULT_RESPONSE,
        stream_chunks: Optional[Sequence[str]] = None,
        delay_seconds: float = 0.0,
        prompt_tokens: int = 10,
        output_tokens: int = 20,
    ) -> None:
        super().__init__(config or fake_provider_config(), api_key)
        self._outcomes: list[Outcome] = list(outcomes or [])
        self.response_content = response_content
        self.stream_chunks = list(stream_chunks) if stream_chunks is not None else None
        self.delay_seconds = delay_seconds
        self.prompt_tokens = prompt_tokens
        self.output_tokens = output_tokens

        self.chat_calls: list[tuple[list[ChatMessage], ChatRequestOptions]] = []
        self.stream_calls: list[tuple[list[ChatMessage], ChatRequestOptions]] = []

    def script(self, *outcomes: Outcome) -> None:
        """Append outcomes to the script."""
        self._outcomes.extend(outcomes)

    @property
    def call_count(self) -> int:
        return len(self.chat_calls)

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> ProviderResponse:
        self.chat_calls.append((list(messages), options))
        started = time.monotonic()
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        content = self.response_content
        if self._outcomes:
            outcome = self._outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            content = outcome

        return self._build_response(
            content=content,
            model=self._resolve_model(options),
            prompt_tokens=self.prompt_tokens,
            output_tokens=self.output_tokens,
            started=started,
        )

    async def _stream_deltas(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> AsyncIterator[str]:
        self.stream_calls.append((list(messages), options))
        if self._outcomes and isinstance(self._outcomes[0], BaseException):
            raise self._outcomes.pop(0)

        if self.stream_chunks is not None:
            chunks = self.stream_chunks
        else:
            words = self.response_content.split()
            chunks = [word if i == 0 else f" {word}" for i, word in enumerate(words)]

        for chunk in chunks:
            if self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            yield chunk
