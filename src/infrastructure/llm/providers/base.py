"""OpenAI-compatible chat completions adapter."""

from collections.abc import Mapping
from typing import Any

from src.infrastructure.llm.protocol import FileFetcher
from src.infrastructure.llm.schemas import (
    Attachment,
    CompletionRequest,
    Credential,
)


def build_messages(
    request: CompletionRequest,
    system_prompt: str | None,
) -> list[dict[str, str]]:
    """Build the outbound message list.

    Blank history turns are dropped and the rest trimmed; the system message,
    when given, always comes first and the new prompt last.
    """
    messages: list[dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.extend(
        {"role": turn.role, "content": turn.content.strip()}
        for turn in request.history
        if turn.content and turn.content.strip()
    )
    messages.append({"role": "user", "content": request.user_prompt})
    return messages


class ChatCompletionsAdapter:
    """Adapter for providers exposing ``POST /chat/completions``.

    401/403 is not retried with another credential by default: a rejected key
    usually means the whole provider is misconfigured.
    """

    name = "openai-compatible"
    base_url = "https://api.openai.com/v1"
    default_model = "gpt-4o-mini"
    retry_unauthorized = False
    fallback_on_unauthorized = True

    def __init__(
        self,
        *,
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 512,
        base_url: str | None = None,
        retry_unauthorized: bool | None = None,
        fallback_on_unauthorized: bool | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            model: Model identifier (class default if omitted).
            temperature: Sampling temperature.
            max_tokens: Maximum output tokens.
            base_url: API base URL override.
            retry_unauthorized: Try the next credential after 401/403.
            fallback_on_unauthorized: Let another provider take over after
                this provider ends with 401/403.
        """
        self.model = model or self.default_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if base_url:
            self.base_url = base_url
        if retry_unauthorized is not None:
            self.retry_unauthorized = retry_unauthorized
        if fallback_on_unauthorized is not None:
            self.fallback_on_unauthorized = fallback_on_unauthorized

    def build_request(
        self,
        credential: Credential,  # noqa: ARG002
        request: CompletionRequest,
        system_prompt: str,
    ) -> tuple[str, dict[str, Any]]:
        return "/chat/completions", {
            "model": self.model,
            "messages": build_messages(request, system_prompt),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def error_message(self, body: Any, status: int) -> str:
        if isinstance(body, Mapping):
            error = body.get("error")
            if isinstance(error, Mapping) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
            if isinstance(body.get("message"), str) and body["message"]:
                return body["message"]
        return f"{self.name} API returned {status}"

    async def parse_response(
        self,
        body: Mapping[str, Any],
        fetch_file: FileFetcher,  # noqa: ARG002
    ) -> tuple[str, list[Attachment]]:
        message = self._first_message(body)
        content = message.get("content")
        return (content if isinstance(content, str) else ""), []

    @staticmethod
    def _first_message(body: Mapping[str, Any]) -> Mapping[str, Any]:
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            return {}
        first = choices[0]
        if not isinstance(first, Mapping):
            return {}
        message = first.get("message")
        return message if isinstance(message, Mapping) else {}
