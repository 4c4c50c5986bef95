"""
Tests for the ProviderAdapter base class and shared helpers.

Reference Documents:
- GUIDELINES pp. 793-795: ABC patterns for the adapter port
"""

import pytest

from vibe_router.core.exceptions import (
    AuthenticationError,
    ModelNotFoundError,
    ProviderErrorKind,
    RateLimitError,
)
from vibe_router.models.chat import ChatMessage, ChatRequestOptions, ModelInfo, ModelTier
from vibe_router.providers.base import (
    ProviderAdapter,
    parse_retry_after,
    provider_error_from_status,
    select_model_for_task,
)
from vibe_router.providers.fake import FakeAdapter, fake_provider_config


class TestProviderAdapterContract:
    def test_cannot_instantiate_abstract_base(self) -> None:
        with pytest.raises(TypeError):
            ProviderAdapter(fake_provider_config())  # type: ignore[abstract]

    def test_metadata_comes_from_config(self) -> None:
        config = fake_provider_config("primary", default_model="primary-model")
        adapter = FakeAdapter(config)

        assert adapter.id == "primary"
        assert adapter.get_config() is config
        assert adapter.get_default_model() == "primary-model"
        assert [m.id for m in adapter.get_models()] == ["primary-model"]
        assert adapter.get_model_info("primary-model") is not None
        assert adapter.get_model_info("other") is None


class TestCredentials:
    def test_keyless_backend_is_always_configured(self) -> None:
        adapter = FakeAdapter(fake_provider_config("local", requires_api_key=False))

        assert adapter.is_configured() is True
        assert adapter.get_api_key() is None

    def test_key_required_and_missing(self) -> None:
        adapter = FakeAdapter(fake_provider_config("cloud", requires_api_key=True))

        assert adapter.is_configured() is False

    def test_key_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLOUD_API_KEY", "  env-key  ")
        adapter = FakeAdapter(fake_provider_config("cloud", requires_api_key=True))

        assert adapter.get_api_key() == "env-key"
        assert adapter.is_configured() is True

    def test_blank_environment_value_is_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLOUD_API_KEY", "   ")
        adapter = FakeAdapter(fake_provider_config("cloud", requires_api_key=True))

        assert adapter.is_configured() is False

    def test_explicit_key_wins_over_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLOUD_API_KEY", "env-key")
        adapter = FakeAdapter(fake_provider_config("cloud", requires_api_key=True), api_key="explicit")

        assert adapter.get_api_key() == "explicit"

    def test_set_api_key_configures(self) -> None:
        adapter = FakeAdapter(fake_provider_config("cloud", requires_api_key=True))

        adapter.set_api_key("new-key")

        assert adapter.is_configured() is True


class TestStreamChat:
    @pytest.mark.asyncio
    async def test_skips_empty_deltas_and_calls_callback(self) -> None:
        adapter = FakeAdapter(stream_chunks=["Hel", "", "lo"])
        seen: list[str] = []

        deltas = [
            d
            async for d in adapter.stream_chat(
                [ChatMessage(role="user", content="hi")], callback=seen.append
            )
        ]

        assert deltas == ["Hel", "lo"]
        assert seen == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_default_options(self) -> None:
        adapter = FakeAdapter()

        _ = [d async for d in adapter.stream_chat([ChatMessage(role="user", content="hi")])]

        assert adapter.stream_calls[0][1] == ChatRequestOptions()


class TestProviderErrorFromStatus:
    @pytest.mark.parametrize("status", [401, 403])
    def test_authentication(self, status: int) -> None:
        error = provider_error_from_status("openai", status, "denied", "gpt-4o")

        assert isinstance(error, AuthenticationError)
        assert error.retryable is False

    def test_model_not_found(self) -> None:
        error = provider_error_from_status("openai", 404, "nope", "gpt-9")

        assert isinstance(error, ModelNotFoundError)
        assert error.retryable is False

    def test_rate_limit_carries_retry_after(self) -> None:
        error = provider_error_from_status("openai", 429, "slow down", "gpt-4o", retry_after=7.0)

        assert isinstance(error, RateLimitError)
        assert error.retry_after == 7.0
        assert error.retryable is True

    @pytest.mark.parametrize(
        "status,kind",
        [
            (408, ProviderErrorKind.TIMEOUT),
            (500, ProviderErrorKind.SERVER),
            (503, ProviderErrorKind.SERVER),
            (400, ProviderErrorKind.BAD_REQUEST),
            (422, ProviderErrorKind.BAD_REQUEST),
            (404, ProviderErrorKind.BAD_REQUEST),
        ],
    )
    def test_kind_by_status(self, status: int, kind: ProviderErrorKind) -> None:
        # 404 without a model is a bad request, not a missing model
        error = provider_error_from_status("openai", status, "failed")

        assert error.kind == kind
        assert error.status_code == status


class TestParseRetryAfter:
    @pytest.mark.parametrize(
        "value,expected",
        [("3", 3.0), ("1.5", 1.5), (None, None), ("", None), ("Wed, 21 Oct 2015 07:28:00 GMT", None)],
    )
    def test_parse(self, value, expected) -> None:
        assert parse_retry_after(value) == expected


class TestSelectModelForTask:
    MODELS = (
        ModelInfo(id="balanced", name="Balanced", tier=ModelTier.BALANCED),
        ModelInfo(id="fast-paid", name="Fast", tier=ModelTier.FAST),
        ModelInfo(id="fast-free", name="Fast free", tier=ModelTier.FAST, free_tier=True),
        ModelInfo(
            id="thinker",
            name="Thinker",
            tier=ModelTier.REASONING,
            capabilities=("completion", "reasoning"),
        ),
    )

    @pytest.mark.parametrize(
        "task,expected",
        [
            ("reasoning", "thinker"),
            ("Plan the refactor", "thinker"),
            ("quick answer", "fast-free"),
            ("simple rename", "fast-free"),
            ("code review", "balanced"),
            ("write docs", "balanced"),
        ],
    )
    def test_selection(self, task: str, expected: str) -> None:
        chosen = select_model_for_task(task, self.MODELS)

        assert chosen is not None
        assert chosen.id == expected

    def test_falls_back_to_first_model(self) -> None:
        models = (ModelInfo(id="only-max", name="Max", tier=ModelTier.MAX),)

        assert select_model_for_task("think hard", models).id == "only-max"

    def test_no_models(self) -> None:
        assert select_model_for_task("code", ()) is None
