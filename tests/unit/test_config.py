"""Tests for settings and provider detection."""

import pytest

from shared.config import Settings, get_settings, is_llm_configured


class TestIsLLMConfigured:
    @pytest.mark.parametrize(
        "provider,api_key,expected",
        [
            ("none", "", False),
            ("none", "sk-test", False),
            ("openai", "", False),
            ("openai", "   ", False),
            ("openai", "sk-test", True),
            ("claude", "sk-ant-test", True),
            ("CLAUDE", "sk-ant-test", True),
            ("ollama", "", True),
            ("something-else", "key", False),
        ],
    )
    def test_provider_matrix(self, provider, api_key, expected):
        settings = Settings(LLM_PROVIDER=provider, LLM_API_KEY=api_key)
        assert is_llm_configured(settings) is expected

    def test_defaults_to_cached_settings(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "ollama")
        get_settings.cache_clear()

        assert is_llm_configured() is True


class TestSettingsDefaults:
    def test_defaults(self):
        settings = Settings()

        assert settings.LLM_PROVIDER == "none"
        assert settings.LLM_TIMEOUT_SECONDS == 15.0
        assert settings.INTENT_TEMPERATURE == pytest.approx(0.1)
        assert settings.HISTORY_WINDOW == 5
        assert settings.TIMEZONE == "Asia/Shanghai"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
