"""
Anthropic Provider Adapter

Claude models through the official ``anthropic`` SDK.

Format differences handled here:
- System prompts are a top-level ``system`` parameter, not a message role
- ``max_tokens`` is mandatory on the Messages API
- Tool-role messages are sent as user turns

Reference Documents:
- GUIDELINES pp. 215: Provider abstraction for model swapping
- Anthropic API Docs: Messages API, streaming text deltas
"""

import time
from typing import Any, AsyncIterator, Optional, Sequence

import anthropic
from anthropic import AsyncAnthropic

from vibe_router.core.exceptions import ProviderError, ProviderErrorKind
from vibe_router.models.chat import (
    ChatMessage,
    ChatRequestOptions,
    ProviderConfig,
    ProviderResponse,
)
from vibe_router.providers.base import (
    ProviderAdapter,
    parse_retry_after,
    provider_error_from_status,
)

DEFAULT_MAX_TOKENS = 4096


class AnthropicAdapter(ProviderAdapter):
    """
    Anthropic Claude adapter.

    Args:
        config: Registry entry for ``anthropic``.
        api_key: Explicit credential, else ANTHROPIC_API_KEY.
        timeout: SDK-level request timeout in seconds.
    """

    def __init__(
        self,
        config: ProviderConfig,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
    ) -> None:
        super().__init__(config, api_key)
        self._timeout = timeout
        self._client: Optional[AsyncAnthropic] = None

    def set_api_key(self, api_key: str) -> None:
        super().set_api_key(api_key)
        self._client = None

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=self.get_api_key(),
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> ProviderResponse:
        model = self._resolve_model(options)
        kwargs = self._build_request_kwargs(messages, options, model)
        started = time.monotonic()

        try:
            response = await self._get_client().messages.create(**kwargs)
        except anthropic.APIError as e:
            raise self._map_error(e, model) from e

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return self._build_response(
            content=content,
            model=response.model or model,
            prompt_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            started=started,
        )

    async def _stream_deltas(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> AsyncIterator[str]:
        model = self._resolve_model(options)
        kwargs = self._build_request_kwargs(messages, options, model)

        try:
            async with self._get_client().messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    yield text
        except anthropic.APIError as e:
            raise self._map_error(e, model) from e

    def _build_request_kwargs(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
        model: str,
    ) -> dict[str, Any]:
        system_parts = [options.system] if options.system else []
        wire_messages: list[dict[str, str]] = []
        for message in messages:
            if message.role == "system":
                system_parts.append(message.content)
            elif message.role == "tool":
                wire_messages.append({"role": "user", "content": message.content})
            else:
                wire_messages.append({"role": message.role, "content": message.content})

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": wire_messages,
            "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if options.stop:
            kwargs["stop_sequences"] = options.stop
        return kwargs

    def _map_error(self, e: anthropic.APIError, model: str) -> ProviderError:
        if isinstance(e, anthropic.APITimeoutError):
            return ProviderError(str(e), self.id, ProviderErrorKind.TIMEOUT, model)
        if isinstance(e, anthropic.APIConnectionError):
            return ProviderError(str(e), self.id, ProviderErrorKind.NETWORK, model)
        if isinstance(e, anthropic.APIStatusError):
            return provider_error_from_status(
                self.id,
                e.status_code,
                str(e),
                model,
                retry_after=parse_retry_after(e.response.headers.get("retry-after")),
            )
        return ProviderError(str(e), self.id, ProviderErrorKind.UNKNOWN, model)
