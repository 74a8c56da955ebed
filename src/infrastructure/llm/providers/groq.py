"""Groq provider adapter."""

from src.infrastructure.llm.providers.base import ChatCompletionsAdapter


class GroqAdapter(ChatCompletionsAdapter):
    """Groq's OpenAI-compatible chat completions endpoint.

    A 401/403 on one key moves on to the next key, since Groq keys are often
    issued per project and one of them may simply be revoked.
    """

    name = "groq"
    base_url = "https://api.groq.com/openai/v1"
    default_model = "llama3-8b-8192"
    retry_unauthorized = True
