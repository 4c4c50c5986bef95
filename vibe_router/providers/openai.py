"""
OpenAI-Compatible Adapters

This module implements the adapter for OpenAI and for every backend that
speaks the OpenAI chat-completions protocol (Google AI's compatibility
endpoint, OpenRouter, MiniMax, LM Studio), plus Azure OpenAI.

Design Patterns:
- Ports and Adapters: OpenAICompatibleAdapter implements ProviderAdapter
- SDK retries are disabled (max_retries=0); retrying is the router's job

SDK exceptions are mapped to classified ProviderErrors in ``_map_error``.
"""

import os
import time
from typing import Any, AsyncIterator, Optional, Sequence

import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

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

# Local servers accept any bearer token but the SDK insists on one.
PLACEHOLDER_API_KEY = "not-needed"

DEFAULT_AZURE_API_VERSION = "2024-10-21"


class OpenAICompatibleAdapter(ProviderAdapter):
    """
    Adapter for OpenAI chat completions and compatible endpoints.

    The SDK client is created on first use and rebuilt when the API key
    changes.

    Args:
        config: Registry entry; ``base_url`` selects the endpoint.
        api_key: Explicit credential, else the config's environment variable.
        timeout: SDK-level request timeout in seconds.

    Example:
        >>> adapter = OpenAICompatibleAdapter(get_provider_config("openrouter"))
        >>> response = await adapter.chat(messages, ChatRequestOptions())
    """

    def __init__(
        self,
        config: ProviderConfig,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
    ) -> None:
        super().__init__(config, api_key)
        self._timeout = timeout
        self._client: Optional[AsyncOpenAI] = None

    def set_api_key(self, api_key: str) -> None:
        super().set_api_key(api_key)
        self._client = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.get_api_key() or PLACEHOLDER_API_KEY,
                base_url=self._config.base_url or None,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    # =========================================================================
    # Chat
    # =========================================================================

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> ProviderResponse:
        model = self._resolve_model(options)
        kwargs = self._build_request_kwargs(messages, options, model)
        started = time.monotonic()

        try:
            response = await self._get_client().chat.completions.create(**kwargs)
        except openai.APIError as e:
            raise self._map_error(e, model) from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        usage = response.usage
        return self._build_response(
            content=content,
            model=response.model or model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            started=started,
        )

    async def _stream_deltas(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> AsyncIterator[str]:
        model = self._resolve_model(options)
        kwargs = self._build_request_kwargs(messages, options, model)
        kwargs["stream"] = True

        try:
            stream = await self._get_client().chat.completions.create(**kwargs)
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.APIError as e:
            raise self._map_error(e, model) from e

    # =========================================================================
    # Helpers
    # =========================================================================

    def _build_request_kwargs(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
        model: str,
    ) -> dict[str, Any]:
        wire_messages: list[dict[str, str]] = []
        if options.system:
            wire_messages.append({"role": "system", "content": options.system})
        wire_messages.extend({"role": m.role, "content": m.content} for m in messages)

        kwargs: dict[str, Any] = {"model": model, "messages": wire_messages}
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature
        if options.max_tokens is not None:
            kwargs["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if options.stop:
            kwargs["stop"] = options.stop
        return kwargs

    def _map_error(self, e: openai.APIError, model: str) -> ProviderError:
        # APITimeoutError subclasses APIConnectionError; check it first.
        if isinstance(e, openai.APITimeoutError):
            return ProviderError(str(e), self.id, ProviderErrorKind.TIMEOUT, model)
        if isinstance(e, openai.APIConnectionError):
            return ProviderError(str(e), self.id, ProviderErrorKind.NETWORK, model)
        if isinstance(e, openai.APIStatusError):
            return provider_error_from_status(
                self.id,
                e.status_code,
                str(e),
                model,
                retry_after=parse_retry_after(e.response.headers.get("retry-after")),
            )
        return ProviderError(str(e), self.id, ProviderErrorKind.UNKNOWN, model)


class AzureOpenAIAdapter(OpenAICompatibleAdapter):
    """
    Azure OpenAI deployment.

    The endpoint comes from AZURE_OPENAI_ENDPOINT and the API version from
    AZURE_OPENAI_API_VERSION. ``model`` is the deployment name.
    """

    ENDPOINT_ENV = "AZURE_OPENAI_ENDPOINT"
    API_VERSION_ENV = "AZURE_OPENAI_API_VERSION"

    def _endpoint(self) -> Optional[str]:
        return os.environ.get(self.ENDPOINT_ENV) or self._config.base_url or None

    def is_configured(self) -> bool:
        return super().is_configured() and self._endpoint() is not None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncAzureOpenAI(
                api_key=self.get_api_key(),
                azure_endpoint=self._endpoint() or "",
                api_version=os.environ.get(self.API_VERSION_ENV, DEFAULT_AZURE_API_VERSION),
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client
