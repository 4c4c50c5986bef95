"""
Tests for the Ollama adapter.

Requests go through a real httpx.AsyncClient wired to an httpx.MockTransport,
so payloads and NDJSON streaming are exercised end to end without a server.
"""

import json
from unittest.mock import patch

import httpx
import pytest

from vibe_router.core.exceptions import ModelNotFoundError, ProviderError, ProviderErrorKind
from vibe_router.models.chat import ChatMessage, ChatRequestOptions
from vibe_router.providers.ollama import OllamaAdapter
from vibe_router.providers.registry import get_provider_config

MESSAGES = [ChatMessage(role="user", content="Hello")]
RealAsyncClient = httpx.AsyncClient


def mock_transport(handler):
    """Patch AsyncClient construction inside the adapter to use ``handler``."""
    transport = httpx.MockTransport(handler)
    return patch(
        "vibe_router.providers.ollama.httpx.AsyncClient",
        lambda **kwargs: RealAsyncClient(transport=transport, **kwargs),
    )


@pytest.fixture
def adapter() -> OllamaAdapter:
    return OllamaAdapter(get_provider_config("ollama"))


class TestOllamaChat:
    @pytest.mark.asyncio
    async def test_posts_payload_and_maps_response(self, adapter: OllamaAdapter) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "model": "llama3.1",
                    "message": {"role": "assistant", "content": "Hi!"},
                    "prompt_eval_count": 5,
                    "eval_count": 3,
                    "done": True,
                },
            )

        with mock_transport(handler):
            response = await adapter.chat(
                MESSAGES, ChatRequestOptions(system="sys", temperature=0.5, max_tokens=64)
            )

        assert response.content == "Hi!"
        assert response.provider == "ollama"
        assert response.usage.total_tokens == 8
        assert response.usage.cost == 0.0

        request = seen[0]
        assert str(request.url) == "http://localhost:11434/api/chat"
        payload = json.loads(request.content)
        assert payload["model"] == "llama3.1"
        assert payload["stream"] is False
        assert payload["messages"][0] == {"role": "system", "content": "sys"}
        assert payload["options"] == {"temperature": 0.5, "num_predict": 64}

    @pytest.mark.asyncio
    async def test_ollama_host_override(
        self, adapter: OllamaAdapter, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434/")
        urls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, json={"message": {"content": "ok"}})

        with mock_transport(handler):
            await adapter.chat(MESSAGES, ChatRequestOptions())

        assert urls == ["http://gpu-box:11434/api/chat"]

    @pytest.mark.asyncio
    async def test_missing_model_maps_to_model_not_found(self, adapter: OllamaAdapter) -> None:
        with mock_transport(lambda request: httpx.Response(404, json={"error": "model not found"})):
            with pytest.raises(ModelNotFoundError):
                await adapter.chat(MESSAGES, ChatRequestOptions(model="nope"))

    @pytest.mark.asyncio
    async def test_server_error(self, adapter: OllamaAdapter) -> None:
        with mock_transport(lambda request: httpx.Response(500)):
            with pytest.raises(ProviderError) as exc_info:
                await adapter.chat(MESSAGES, ChatRequestOptions())

        assert exc_info.value.kind == ProviderErrorKind.SERVER

    @pytest.mark.asyncio
    async def test_connection_refused_is_network_error(self, adapter: OllamaAdapter) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        with mock_transport(handler):
            with pytest.raises(ProviderError) as exc_info:
                await adapter.chat(MESSAGES, ChatRequestOptions())

        assert exc_info.value.kind == ProviderErrorKind.NETWORK
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout(self, adapter: OllamaAdapter) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with mock_transport(handler):
            with pytest.raises(ProviderError) as exc_info:
                await adapter.chat(MESSAGES, ChatRequestOptions())

        assert exc_info.value.kind == ProviderErrorKind.TIMEOUT

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            b"<html>502 Bad Gateway</html>",
            b'{"model": "llama3.1", "message": null}',
            b'["not", "an", "object"]',
        ],
    )
    async def test_malformed_body_is_server_error(self, adapter: OllamaAdapter, body: bytes) -> None:
        with mock_transport(lambda request: httpx.Response(200, content=body)):
            with pytest.raises(ProviderError) as exc_info:
                await adapter.chat(MESSAGES, ChatRequestOptions())

        assert exc_info.value.kind == ProviderErrorKind.SERVER
        assert exc_info.value.provider == "ollama"
        assert exc_info.value.retryable is True


class TestOllamaStream:
    @pytest.mark.asyncio
    async def test_streams_ndjson_until_done(self, adapter: OllamaAdapter) -> None:
        lines = [
            {"message": {"content": "Hel"}, "done": False},
            {"message": {"content": ""}, "done": False},
            {"message": {"content": "lo"}, "done": False},
            {"message": {"content": ""}, "done": True},
            {"message": {"content": "ignored"}, "done": False},
        ]
        body = "\n".join(json.dumps(line) for line in lines) + "\n"
        payloads: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            payloads.append(json.loads(request.content))
            return httpx.Response(200, content=body.encode())

        with mock_transport(handler):
            deltas = [d async for d in adapter.stream_chat(MESSAGES)]

        assert deltas == ["Hel", "lo"]
        assert payloads[0]["stream"] is True

    @pytest.mark.asyncio
    async def test_stream_skips_malformed_lines(self, adapter: OllamaAdapter) -> None:
        body = (
            'not json\n[1, 2]\n{"message": null}\n'
            '{"message": {"content": "ok"}, "done": true}\n'
        )

        with mock_transport(lambda request: httpx.Response(200, content=body.encode())):
            deltas = [d async for d in adapter.stream_chat(MESSAGES)]

        assert deltas == ["ok"]

    @pytest.mark.asyncio
    async def test_stream_http_error(self, adapter: OllamaAdapter) -> None:
        with mock_transport(lambda request: httpx.Response(503)):
            with pytest.raises(ProviderError) as exc_info:
                async for _ in adapter.stream_chat(MESSAGES):
                    pass

        assert exc_info.value.kind == ProviderErrorKind.SERVER


class TestOllamaConfig:
    def test_configured_without_key(self, adapter: OllamaAdapter) -> None:
        assert adapter.is_configured() is True
