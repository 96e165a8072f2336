"""
Configuration module - Central access point for environment variables.

CRITICAL: Access ALL environment variables through this module.
NEVER use os.getenv() directly in application code.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

# Providers that need an API key to be considered configured
KEYED_PROVIDERS = {"openai", "claude"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Remote language model (intent classification)
    LLM_PROVIDER: str = Field(
        default="none",
        description="Remote model provider: openai, claude, ollama or none (local-only mode)"
    )
    LLM_API_KEY: str = Field(default="", description="API key for openai/claude providers")
    LLM_BASE_URL: str = Field(
        default="",
        description="Override base URL (OpenAI-compatible gateways, Ollama host)"
    )
    LLM_MODEL: str = Field(
        default="",
        description="Model name. Empty means the provider default"
    )
    LLM_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        description="Caller-visible timeout for a single remote call"
    )
    LLM_TEMPERATURE: float = Field(default=0.7)
    LLM_MAX_TOKENS: int = Field(default=2048)
    INTENT_TEMPERATURE: float = Field(
        default=0.1,
        description="Low temperature for deterministic intent classification"
    )

    # Conversation
    HISTORY_WINDOW: int = Field(
        default=5,
        description="Number of recent turns included in the classification prompt"
    )
    TIMEZONE: str = Field(
        default="Asia/Shanghai",
        description="Reference timezone for resolving the current year in dates"
    )

    # Application Settings
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ORIGINS: str = Field(default="http://localhost:5173")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


def is_llm_configured(settings: Settings | None = None) -> bool:
    """
    Whether remote intent classification is available.

    Ollama runs locally and needs no key; openai/claude need a non-empty key.
    Anything else (including "none") means local-only mode.
    """
    settings = settings or get_settings()
    provider = settings.LLM_PROVIDER.strip().lower()

    if provider == "ollama":
        return True
    if provider in KEYED_PROVIDERS:
        return bool(settings.LLM_API_KEY.strip())
    return False
