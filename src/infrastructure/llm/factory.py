"""Build the completion pipeline from settings."""

from typing import Any

import structlog

from src.config import Settings
from src.infrastructure.llm.client import ProviderClient
from src.infrastructure.llm.exceptions import LLMConfigurationError
from src.infrastructure.llm.fallback import FallbackCompletionClient
from src.infrastructure.llm.prompts import file_system_prompt
from src.infrastructure.llm.providers import GroqAdapter, MistralAdapter

logger = structlog.get_logger()


def summarize_llm_config(settings: Settings) -> dict[str, Any]:
    """Describe the provider setup without exposing any secret."""
    mistral = settings.mistral_credentials()
    groq = settings.groq_credentials()
    return {
        "mistral_keys": len(mistral),
        "mistral_agents": sum(1 for c in mistral if c.agent_id),
        "mistral_model": settings.mistral_model,
        "groq_keys": len(groq),
        "groq_model": settings.groq_model,
        "timeout_seconds": settings.llm_timeout_seconds,
        "circuit_breaker": settings.circuit_breaker_fail_max > 0,
    }


def _breaker_kwargs(settings: Settings) -> dict[str, Any]:
    return {
        "circuit_breaker_fail_max": settings.circuit_breaker_fail_max,
        "circuit_breaker_timeout": settings.circuit_breaker_timeout,
    }


def create_mistral_client(settings: Settings) -> ProviderClient | None:
    """Mistral client, or None when no Mistral key is configured."""
    credentials = settings.mistral_credentials()
    if not credentials:
        return None

    adapter = MistralAdapter(
        model=settings.mistral_model,
        temperature=settings.mistral_temperature,
        max_tokens=settings.mistral_max_tokens,
        retry_unauthorized=settings.mistral_retry_unauthorized,
    )
    return ProviderClient(
        adapter,
        credentials,
        system_prompt=file_system_prompt(settings.mistral_prompt_path),
        timeout_seconds=settings.llm_timeout_seconds,
        **_breaker_kwargs(settings),
    )


def create_groq_client(settings: Settings) -> ProviderClient | None:
    """Groq client, or None when no Groq key is configured."""
    credentials = settings.groq_credentials()
    if not credentials:
        return None

    adapter = GroqAdapter(
        model=settings.groq_model,
        temperature=settings.groq_temperature,
        max_tokens=settings.groq_max_tokens,
        retry_unauthorized=settings.groq_retry_unauthorized,
    )
    return ProviderClient(
        adapter,
        credentials,
        system_prompt=file_system_prompt(settings.groq_prompt_path),
        timeout_seconds=settings.llm_timeout_seconds,
        **_breaker_kwargs(settings),
    )


def create_completion_client(settings: Settings) -> FallbackCompletionClient:
    """Wire Mistral (primary) and Groq (secondary) behind the fallback client.

    Raises:
        LLMConfigurationError: If neither provider has a key.
    """
    primary = create_mistral_client(settings)
    secondary = create_groq_client(settings)

    if primary is None and secondary is None:
        raise LLMConfigurationError("At least one LLM provider must be configured")

    logger.info("llm_configured", **summarize_llm_config(settings))
    return FallbackCompletionClient(primary, secondary)
