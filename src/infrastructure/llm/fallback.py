"""Fallback orchestrator across a primary and a secondary provider."""

import time

import structlog

from src.infrastructure.llm.exceptions import (
    AllProvidersExhaustedError,
    LLMConfigurationError,
    LLMProviderError,
)
from src.infrastructure.llm.protocol import CompletionProvider
from src.infrastructure.llm.schemas import CompletionRequest, CompletionResult
from src.infrastructure.observability import get_tracer

logger = structlog.get_logger()
tracer = get_tracer(__name__)


class FallbackCompletionClient:
    """Completion client that falls back to a secondary provider on failure.

    The primary provider is always tried first. When it fails with an error
    it considers fallback-eligible (rate limits, provider outages, transport
    problems, empty answers) the secondary provider is tried. A failure the
    primary marks as not eligible, such as a rejected request, is raised
    right away without contacting the secondary.
    """

    def __init__(
        self,
        primary_provider: CompletionProvider | None,
        secondary_provider: CompletionProvider | None = None,
    ) -> None:
        """Initialize the fallback client.

        Args:
            primary_provider: Provider tried first.
            secondary_provider: Provider tried when the primary fails.

        Raises:
            LLMConfigurationError: If neither provider is given.
        """
        if primary_provider is None and secondary_provider is None:
            raise LLMConfigurationError("At least one LLM provider must be configured")

        if primary_provider is None:
            primary_provider, secondary_provider = secondary_provider, None

        self._primary: CompletionProvider = primary_provider  # type: ignore[assignment]
        self._secondary = secondary_provider
        self._logged_first_success = False

    @property
    def providers(self) -> list[CompletionProvider]:
        """Configured providers in the order they are tried."""
        return [p for p in (self._primary, self._secondary) if p is not None]

    async def complete(
        self,
        request: CompletionRequest,
        *,
        budget_seconds: float | None = None,
    ) -> CompletionResult:
        """Generate a completion with automatic provider fallback.

        Args:
            request: The completion request.
            budget_seconds: Optional overall time budget. No new attempt is
                started once it is spent.

        Returns:
            The completion from whichever provider answered.

        Raises:
            LLMProviderError: The primary's error when fallback is not
                possible or not eligible.
            AllProvidersExhaustedError: If both providers failed.
        """
        deadline = time.monotonic() + budget_seconds if budget_seconds else None

        with tracer.start_as_current_span("llm.complete") as span:
            span.set_attribute("llm.primary_provider", self._primary.name)
            span.set_attribute("llm.input_length", len(request.user_prompt))
            span.set_attribute("llm.history_length", len(request.history))

            try:
                result = await self._primary.complete(request, deadline=deadline)
                self._record_success(result)
                span.set_attribute("llm.provider", result.provider)
                return result
            except LLMProviderError as primary_error:
                if self._secondary is None:
                    raise
                if not self._primary.is_fallback_eligible(primary_error):
                    logger.warning(
                        "llm_fallback_skipped",
                        provider=self._primary.name,
                        kind=primary_error.kind.value if primary_error.kind else None,
                    )
                    raise

                logger.warning(
                    "llm_fallback_triggered",
                    from_provider=self._primary.name,
                    to_provider=self._secondary.name,
                    status=primary_error.status,
                    primary_error=str(primary_error),
                )
                span.set_attribute("llm.fallback", True)

                try:
                    result = await self._secondary.complete(request, deadline=deadline)
                except LLMProviderError as secondary_error:
                    logger.error(
                        "llm_fallback_also_failed",
                        primary_error=str(primary_error),
                        secondary_error=str(secondary_error),
                        secondary_provider=self._secondary.name,
                    )
                    raise AllProvidersExhaustedError(
                        primary_error, secondary_error
                    ) from secondary_error

                logger.info("llm_fallback_success", provider=self._secondary.name)
                self._record_success(result)
                span.set_attribute("llm.provider", result.provider)
                return result

    def _record_success(self, result: CompletionResult) -> None:
        if not self._logged_first_success:
            self._logged_first_success = True
            logger.info("llm_provider_in_use", provider=result.provider)

    async def aclose(self) -> None:
        """Close providers that hold network resources."""
        for provider in self.providers:
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()
