"""Protocol definitions for completion providers."""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

from src.infrastructure.llm.exceptions import LLMProviderError
from src.infrastructure.llm.schemas import (
    Attachment,
    CompletionRequest,
    CompletionResult,
    Credential,
)

FileFetcher = Callable[[str], Awaitable[bytes | None]]


class CompletionProvider(Protocol):
    """Capability interface shared by every provider.

    The fallback orchestrator only talks to this interface, so it never
    needs to know which concrete provider it is driving.
    """

    @property
    def name(self) -> str:
        """Provider name used in logs and results."""
        ...

    async def complete(
        self,
        request: CompletionRequest,
        *,
        deadline: float | None = None,
    ) -> CompletionResult:
        """Generate a completion.

        Args:
            request: The completion request.
            deadline: Optional ``time.monotonic()`` value after which no new
                attempt may start.

        Returns:
            The completion result.

        Raises:
            LLMProviderError: If the completion fails.
        """
        ...

    def is_fallback_eligible(self, error: LLMProviderError) -> bool:
        """Whether another provider should be tried after ``error``."""
        ...


class ProviderAdapter(Protocol):
    """Provider-specific request and response shapes.

    Adapters are pure translation: they build the HTTP request for one
    credential and decode a 2xx body. Transport, status classification and
    credential rotation live elsewhere.
    """

    name: str
    base_url: str
    retry_unauthorized: bool
    fallback_on_unauthorized: bool

    def build_request(
        self,
        credential: Credential,
        request: CompletionRequest,
        system_prompt: str,
    ) -> tuple[str, dict[str, Any]]:
        """Return the endpoint path and JSON payload for one attempt."""
        ...

    def error_message(self, body: Any, status: int) -> str:
        """Extract a readable message from an error body."""
        ...

    async def parse_response(
        self,
        body: Mapping[str, Any],
        fetch_file: FileFetcher,
    ) -> tuple[str, list[Attachment]]:
        """Decode a 2xx body into answer text and attachments.

        Args:
            body: Decoded JSON body.
            fetch_file: Downloads a provider file path with the same
                credential; resolves to None when the download failed.

        Returns:
            The raw (untrimmed) text and any attachments.
        """
        ...
