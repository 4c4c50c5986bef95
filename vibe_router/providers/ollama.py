"""
Ollama Provider Adapter

Local models served by Ollama's native ``/api/chat`` endpoint.

- HTTP Client: httpx.AsyncClient per request
- Streaming: newline-delimited JSON objects, one per delta
- No API key; OLLAMA_HOST overrides the registry base URL

Connection refusals are classified as network errors, so an Ollama that is
not running is skipped by fallback like any other unreachable backend.
"""

import json
import os
import time
from typing import Any, AsyncIterator, Optional, Sequence

import httpx

from vibe_router.core.exceptions import ProviderError, ProviderErrorKind
from vibe_router.models.chat import (
    ChatMessage,
    ChatRequestOptions,
    ProviderConfig,
    ProviderResponse,
)
from vibe_router.providers.base import ProviderAdapter, provider_error_from_status

HOST_ENV = "OLLAMA_HOST"


class OllamaAdapter(ProviderAdapter):
    """
    Ollama adapter.

    Args:
        config: Registry entry for ``ollama``.
        api_key: Ignored; accepted for factory symmetry.
        timeout: Request timeout in seconds (local models can be slow).
    """

    def __init__(
        self,
        config: ProviderConfig,
        api_key: Optional[str] = None,
        timeout: float = 300.0,
    ) -> None:
        super().__init__(config, api_key)
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return (os.environ.get(HOST_ENV) or self._config.base_url).rstrip("/")

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> ProviderResponse:
        model = self._resolve_model(options)
        payload = self._build_payload(messages, options, model, stream=False)
        started = time.monotonic()

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(f"{self.base_url}/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise self._map_error(e, model) from e
        except ValueError as e:
            raise self._malformed("response body is not JSON", model) from e

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise self._malformed("response has no message object", model)

        return self._build_response(
            content=message.get("content") or "",
            model=data.get("model", model),
            prompt_tokens=data.get("prompt_eval_count", 0),
            output_tokens=data.get("eval_count", 0),
            started=started,
        )

    async def _stream_deltas(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
    ) -> AsyncIterator[str]:
        model = self._resolve_model(options)
        payload = self._build_payload(messages, options, model, stream=True)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                async with client.stream(
                    "POST", f"{self.base_url}/api/chat", json=payload
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line:
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError:
                            continue
                        if not isinstance(data, dict):
                            continue
                        message = data.get("message")
                        content = message.get("content") if isinstance(message, dict) else None
                        if content:
                            yield content
                        if data.get("done"):
                            break
        except httpx.HTTPError as e:
            raise self._map_error(e, model) from e

    def _build_payload(
        self,
        messages: Sequence[ChatMessage],
        options: ChatRequestOptions,
        model: str,
        stream: bool,
    ) -> dict[str, Any]:
        wire_messages: list[dict[str, str]] = []
        if options.system:
            wire_messages.append({"role": "system", "content": options.system})
        wire_messages.extend({"role": m.role, "content": m.content} for m in messages)

        model_options: dict[str, Any] = {}
        if options.temperature is not None:
            model_options["temperature"] = options.temperature
        if options.top_p is not None:
            model_options["top_p"] = options.top_p
        if options.max_tokens is not None:
            model_options["num_predict"] = options.max_tokens
        if options.stop:
            model_options["stop"] = options.stop

        payload: dict[str, Any] = {"model": model, "messages": wire_messages, "stream": stream}
        if model_options:
            payload["options"] = model_options
        return payload

    def _malformed(self, detail: str, model: str) -> ProviderError:
        return ProviderError(
            f"Malformed Ollama response: {detail}", self.id, ProviderErrorKind.SERVER, model
        )

    def _map_error(self, e: httpx.HTTPError, model: str) -> ProviderError:
        if isinstance(e, httpx.TimeoutException):
            return ProviderError(
                f"Request to Ollama timed out: {e}", self.id, ProviderErrorKind.TIMEOUT, model
            )
        if isinstance(e, httpx.HTTPStatusError):
            return provider_error_from_status(
                self.id, e.response.status_code, f"Ollama API error: {e}", model
            )
        if isinstance(e, httpx.TransportError):
            return ProviderError(
                f"Failed to connect to Ollama: {e}", self.id, ProviderErrorKind.NETWORK, model
            )
        return ProviderError(str(e), self.id, ProviderErrorKind.UNKNOWN, model)
