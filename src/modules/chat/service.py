"""Chat service: completion plus transport-sized packaging."""

import structlog

from src.infrastructure.llm.exceptions import (
    AllProvidersExhaustedError,
    LLMConfigurationError,
    LLMProviderError,
    LLMRateLimitError,
)
from src.infrastructure.llm.fallback import FallbackCompletionClient
from src.infrastructure.llm.schemas import CompletionRequest, ErrorKind
from src.infrastructure.observability import add_span_attributes, traced
from src.modules.chat.history import HistoryInput, build_history
from src.modules.chat.schemas import ChatReply
from src.modules.chat.splitter import MESSAGE_MAX_CHARS, split_message

logger = structlog.get_logger()

GENERIC_FAILURE_MESSAGE = (
    "Sorry, I'm having trouble answering right now. Please try again in a moment."
)
UNAUTHORIZED_MESSAGE = (
    "I can't reach my language model right now: the API key configuration "
    "looks wrong. Please ask an administrator to check it."
)
CONFIGURATION_MESSAGE = "No language model is configured yet."


def _retry_hint(error: LLMProviderError) -> int | None:
    if isinstance(error, LLMRateLimitError | AllProvidersExhaustedError):
        return error.retry_after_seconds
    return None


def describe_failure(error: LLMProviderError) -> str:
    """Turn a surfaced completion error into a sentence for the user.

    Never includes credentials or raw provider payloads.
    """
    if isinstance(error, LLMConfigurationError):
        return CONFIGURATION_MESSAGE

    wait = _retry_hint(error)
    if wait is not None:
        return f"I'm being rate limited right now. Please try again in ~{wait}s."

    if error.kind == ErrorKind.RATE_LIMITED:
        return "I'm being rate limited right now. Please try again shortly."
    if error.kind == ErrorKind.UNAUTHORIZED:
        return UNAUTHORIZED_MESSAGE
    return GENERIC_FAILURE_MESSAGE


class ChatService:
    """Answers a prompt and splits the answer into transport-sized segments."""

    def __init__(
        self,
        client: FallbackCompletionClient,
        *,
        max_chars: int = MESSAGE_MAX_CHARS,
        budget_seconds: float | None = None,
    ) -> None:
        """Initialize the chat service.

        Args:
            client: Completion client with provider fallback.
            max_chars: Per-message limit of the outbound transport.
            budget_seconds: Default overall time budget per question.
        """
        self._client = client
        self._max_chars = max_chars
        self._budget_seconds = budget_seconds

    @traced(span_name="chat.ask")
    async def ask(
        self,
        user_prompt: str,
        history: HistoryInput | None = (),
        *,
        budget_seconds: float | None = None,
    ) -> ChatReply:
        """Get a completion for ``user_prompt`` and package it.

        Args:
            user_prompt: The new user message.
            history: Prior turns, oldest first.
            budget_seconds: Overall time budget, overriding the default.

        Returns:
            The reply segments, attachments and serving provider.

        Raises:
            ValueError: If the prompt is blank.
            LLMProviderError: If no provider produced an answer.
        """
        prompt = user_prompt.strip()
        if not prompt:
            raise ValueError("Prompt must not be blank")

        request = CompletionRequest(user_prompt=prompt, history=build_history(history))
        add_span_attributes(
            {
                "chat.prompt_length": len(prompt),
                "chat.history_length": len(request.history),
            }
        )

        result = await self._client.complete(
            request,
            budget_seconds=budget_seconds or self._budget_seconds,
        )

        segments = split_message(result.content, self._max_chars)
        add_span_attributes(
            {
                "chat.provider": result.provider,
                "chat.segment_count": len(segments),
                "chat.attachment_count": len(result.attachments),
            }
        )
        logger.info(
            "chat_answered",
            provider=result.provider,
            answer_length=len(result.content),
            segment_count=len(segments),
            attachment_count=len(result.attachments),
        )
        return ChatReply(
            segments=segments,
            attachments=list(result.attachments),
            provider=result.provider,
        )

    async def reply_text(
        self,
        user_prompt: str,
        history: HistoryInput | None = (),
        *,
        budget_seconds: float | None = None,
    ) -> ChatReply:
        """Like ``ask`` but turns completion failures into a reply message."""
        try:
            return await self.ask(user_prompt, history, budget_seconds=budget_seconds)
        except LLMProviderError as e:
            logger.error(
                "chat_failed",
                error=str(e),
                provider=e.provider,
                kind=e.kind.value if e.kind else None,
            )
            return ChatReply(segments=split_message(describe_failure(e), self._max_chars))
