"""Concrete provider adapters."""

from src.infrastructure.llm.providers.base import (
    ChatCompletionsAdapter,
    build_messages,
)
from src.infrastructure.llm.providers.groq import GroqAdapter
from src.infrastructure.llm.providers.mistral import MistralAdapter

__all__ = [
    "ChatCompletionsAdapter",
    "GroqAdapter",
    "MistralAdapter",
    "build_messages",
]
