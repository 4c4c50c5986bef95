"""
Tests for the scriptable FakeAdapter.
"""

import pytest

from vibe_router.core.exceptions import ProviderError, ProviderErrorKind
from vibe_router.models.chat import ChatMessage, ChatRequestOptions, ModelInfo
from vibe_router.providers.fake import DEFAULT_RESPONSE, FakeAdapter, fake_provider_config

MESSAGES = [ChatMessage(role="user", content="hi")]


class TestFakeProviderConfig:
    def test_keyless_by_default(self) -> None:
        config = fake_provider_config()

        assert config.id == "fake"
        assert config.requires_api_key is False
        assert config.api_key_env == ""

    def test_key_env_derived_from_id(self) -> None:
        config = fake_provider_config("cloud", requires_api_key=True)

        assert config.api_key_env == "CLOUD_API_KEY"
        assert config.name == "Cloud"

    def test_extra_models(self) -> None:
        config = fake_provider_config(extra_models=(ModelInfo(id="second", name="Second"),))

        assert [m.id for m in config.models] == ["fake-model", "second"]


class TestFakeAdapterChat:
    @pytest.mark.asyncio
    async def test_default_response(self) -> None:
        adapter = FakeAdapter()

        response = await adapter.chat(MESSAGES, ChatRequestOptions())

        assert response.content == DEFAULT_RESPONSE
        assert response.provider == "fake"
        assert response.model == "fake-model"
        assert response.usage.total_tokens == 30

    @pytest.mark.asyncio
    async def test_script_is_consumed_in_order(self) -> None:
        error = ProviderError("down", "fake", ProviderErrorKind.SERVER)
        adapter = FakeAdapter(outcomes=[error, "second"])

        with pytest.raises(ProviderError) as exc_info:
            await adapter.chat(MESSAGES, ChatRequestOptions())
        second = await adapter.chat(MESSAGES, ChatRequestOptions())
        third = await adapter.chat(MESSAGES, ChatRequestOptions())

        assert exc_info.value is error
        assert second.content == "second"
        assert third.content == DEFAULT_RESPONSE
        assert adapter.call_count == 3

    @pytest.mark.asyncio
    async def test_records_calls_and_model_override(self) -> None:
        adapter = FakeAdapter()
        options = ChatRequestOptions(model="custom", temperature=0.2)

        response = await adapter.chat(MESSAGES, options)

        assert adapter.chat_calls == [(MESSAGES, options)]
        assert response.model == "custom"

    @pytest.mark.asyncio
    async def test_cost_from_model_prices(self) -> None:
        config = fake_provider_config(input_price=1.0, output_price=2.0)
        adapter = FakeAdapter(config, prompt_tokens=1_000_000, output_tokens=500_000)

        response = await adapter.chat(MESSAGES, ChatRequestOptions())

        assert response.usage.cost == pytest.approx(2.0)


class TestFakeAdapterStream:
    @pytest.mark.asyncio
    async def test_streams_words(self) -> None:
        adapter = FakeAdapter(response_content="one two three")

        deltas = [d async for d in adapter.stream_chat(MESSAGES)]

        assert deltas == ["one", " two", " three"]
        assert "".join(deltas) == "one two three"

    @pytest.mark.asyncio
    async def test_scripted_error_raises_before_first_delta(self) -> None:
        adapter = FakeAdapter(outcomes=[ProviderError("down", "fake", ProviderErrorKind.NETWORK)])

        with pytest.raises(ProviderError):
            async for _ in adapter.stream_chat(MESSAGES):
                pass

        assert len(adapter.stream_calls) == 1
