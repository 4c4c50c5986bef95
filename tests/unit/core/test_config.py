"""
Tests for Settings.

Pattern: pydantic-settings with VIBE_ env prefix and an lru_cache singleton.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from vibe_router.core.config import Settings, get_settings


class TestSettingsDefaults:
    def test_routing_defaults(self) -> None:
        settings = Settings()

        assert settings.default_provider == "anthropic"
        assert settings.default_model is None
        assert settings.fallback_strategy == "balanced"
        assert settings.max_retries == 2

    def test_resilience_defaults(self) -> None:
        settings = Settings()

        assert settings.request_timeout_seconds == 30.0
        assert settings.retry_backoff_factor == 2.0
        assert settings.retry_base_delay_seconds == 1.0
        assert settings.retry_jitter is True

    def test_circuit_breaker_defaults(self) -> None:
        settings = Settings()

        assert settings.circuit_breaker_failure_threshold == 5
        assert settings.circuit_breaker_success_threshold == 2
        assert settings.circuit_breaker_reset_timeout_seconds == 30.0


class TestSettingsEnvironment:
    def test_reads_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIBE_MAX_RETRIES", "4")
        monkeypatch.setenv("VIBE_FALLBACK_STRATEGY", "local-first")
        monkeypatch.setenv("VIBE_DEFAULT_PROVIDER", " OpenAI ")

        settings = Settings()

        assert settings.max_retries == 4
        assert settings.fallback_strategy == "local-first"
        assert settings.default_provider == "openai"

    def test_config_dir_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIBE_CONFIG_DIR", str(tmp_path))

        assert Settings().config_dir == tmp_path

    def test_log_level_is_normalized(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIBE_LOG_LEVEL", "debug")

        assert Settings().log_level == "DEBUG"

    def test_invalid_log_level_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIBE_LOG_LEVEL", "chatty")

        with pytest.raises(ValidationError):
            Settings()

    def test_unknown_strategy_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIBE_FALLBACK_STRATEGY", "random")

        with pytest.raises(ValidationError):
            Settings()

    def test_negative_retries_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIBE_MAX_RETRIES", "-1")

        with pytest.raises(ValidationError):
            Settings()


class TestGetSettings:
    def test_returns_singleton(self) -> None:
        assert get_settings() is get_settings()

    def test_cache_clear_rebuilds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_settings()
        monkeypatch.setenv("VIBE_MAX_RETRIES", "5")
        get_settings.cache_clear()

        second = get_settings()

        assert second is not first
        assert second.max_retries == 5
