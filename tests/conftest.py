"""
Test configuration and fixtures.

This module sets up test environment and provides shared fixtures for all tests.
"""

import os

import pytest

# Local-only mode unless a test opts into a remote provider explicitly.
# Must be set BEFORE any imports of shared.config
os.environ["LLM_PROVIDER"] = "none"
os.environ["LLM_API_KEY"] = ""
os.environ["TIMEZONE"] = "Asia/Shanghai"


@pytest.fixture(scope="function", autouse=True)
def reset_settings_cache():
    """Reload settings for each test so env overrides do not leak."""
    from shared.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def local_settings():
    """Settings with remote classification disabled."""
    from shared.config import Settings

    return Settings(LLM_PROVIDER="none", LLM_API_KEY="")


@pytest.fixture
def remote_settings():
    """Settings that count as configured without network access (Ollama needs no key)."""
    from shared.config import Settings

    return Settings(LLM_PROVIDER="ollama", LLM_TIMEOUT_SECONDS=0.5)
