"""
LLM client - chat-completion adapter over LangChain chat models.

Implements the chat-completion contract consumed by the intent recognizer:
an ordered list of {role, content} messages in, either a success carrying a
single text payload or a failure carrying an error message out.

Providers:
- openai: ChatOpenAI against api.openai.com or any OpenAI-compatible gateway
- ollama: ChatOpenAI against Ollama's OpenAI-compatible endpoint (no key)
- claude: ChatAnthropic

call_llm() never raises for transport or provider errors. The caller decides
what to do with a failed response (the recognizer falls back to local rules).
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Literal

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from shared.config import Settings, get_settings, is_llm_configured

logger = logging.getLogger(__name__)

MessageRole = Literal["system", "user", "assistant"]

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "claude": "claude-3-5-haiku-latest",
    "ollama": "llama3.1",
}

DEFAULT_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "ollama": "http://localhost:11434/v1",
}


class LLMNotConfiguredError(RuntimeError):
    """Raised when a client is requested while running in local-only mode."""


@dataclass(frozen=True)
class ChatMessage:
    """Single chat message in provider-neutral form."""

    role: MessageRole
    content: str


@dataclass(frozen=True)
class LLMResponse:
    """
    Outcome of a chat-completion call.

    Attributes:
        success: True when the provider returned a non-empty text payload
        content: The text payload (empty on failure)
        error: Error description (None on success)
    """

    success: bool
    content: str = ""
    error: str | None = None


def _to_langchain_messages(messages: list[ChatMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "assistant":
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


def _content_to_text(content: object) -> str:
    """Flatten LangChain message content (str or list of content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return ""


def _get_llm_client(
    settings: Settings,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> BaseChatModel:
    """
    Build the LangChain chat model for the configured provider.

    Retries are disabled: a failed call is reported once and the caller falls
    back to local rules within the same turn.
    """
    if not is_llm_configured(settings):
        raise LLMNotConfiguredError(
            f"LLM provider '{settings.LLM_PROVIDER}' is not configured"
        )

    provider = settings.LLM_PROVIDER.strip().lower()
    model = settings.LLM_MODEL or DEFAULT_MODELS[provider]
    temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
    max_tokens = settings.LLM_MAX_TOKENS if max_tokens is None else max_tokens

    if provider == "claude":
        kwargs = {}
        if settings.LLM_BASE_URL:
            kwargs["base_url"] = settings.LLM_BASE_URL
        return ChatAnthropic(
            model=model,
            api_key=settings.LLM_API_KEY,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_retries=0,
            **kwargs,
        )

    return ChatOpenAI(
        model=model,
        # Ollama ignores the key but the client requires one
        api_key=settings.LLM_API_KEY or "ollama",
        base_url=settings.LLM_BASE_URL or DEFAULT_BASE_URLS[provider],
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        max_retries=0,
    )


async def call_llm(
    messages: list[ChatMessage],
    temperature: float | None = None,
    max_tokens: int | None = None,
    settings: Settings | None = None,
) -> LLMResponse:
    """
    Send a chat-completion request to the configured provider.

    Args:
        messages: Ordered conversation (system / user / assistant)
        temperature: Sampling temperature override
        max_tokens: Completion length override
        settings: Settings override (defaults to get_settings())

    Returns:
        LLMResponse. Failures (unconfigured provider, timeout, transport or
        provider errors, empty payload) come back as success=False.
    """
    settings = settings or get_settings()
    start_time = time.time()

    try:
        llm = _get_llm_client(settings, temperature=temperature, max_tokens=max_tokens)
        response = await asyncio.wait_for(
            llm.ainvoke(_to_langchain_messages(messages)),
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
    except LLMNotConfiguredError as e:
        return LLMResponse(success=False, error=str(e))
    except asyncio.TimeoutError:
        logger.warning(
            f"LLM call timed out after {settings.LLM_TIMEOUT_SECONDS:.1f}s | "
            f"provider={settings.LLM_PROVIDER}"
        )
        return LLMResponse(success=False, error="timeout")
    except Exception as e:
        latency_ms = (time.time() - start_time) * 1000
        logger.warning(
            f"LLM call failed | provider={settings.LLM_PROVIDER} | error={e} | "
            f"latency={latency_ms:.0f}ms"
        )
        return LLMResponse(success=False, error=str(e) or type(e).__name__)

    content = _content_to_text(getattr(response, "content", ""))
    latency_ms = (time.time() - start_time) * 1000

    if not content.strip():
        logger.warning(f"LLM returned empty content | latency={latency_ms:.0f}ms")
        return LLMResponse(success=False, error="empty response")

    logger.debug(f"LLM call succeeded | latency={latency_ms:.0f}ms | chars={len(content)}")
    return LLMResponse(success=True, content=content)
