"""Credential-rotating client for a single provider."""

import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import timedelta

import httpx
import structlog
from aiobreaker import CircuitBreaker, CircuitBreakerError

from src.infrastructure.llm.cooldown import KeyCooldownTable
from src.infrastructure.llm.exceptions import (
    AllCredentialsExhaustedError,
    LLMConfigurationError,
    LLMInvalidRequestError,
    LLMProviderError,
    LLMRateLimitError,
    LLMServerError,
    LLMTimeoutError,
    error_from_classified,
)
from src.infrastructure.llm.executor import (
    DEFAULT_RATE_LIMIT_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    ProviderRequestExecutor,
)
from src.infrastructure.llm.prompts import CachedSystemPrompt, SystemPromptSource
from src.infrastructure.llm.protocol import ProviderAdapter
from src.infrastructure.llm.schemas import (
    ClassifiedError,
    CompletionRequest,
    CompletionResult,
    Credential,
    ErrorKind,
    InvalidRequest,
    RateLimited,
    Unauthorized,
)
from src.infrastructure.observability import get_tracer

logger = structlog.get_logger()
tracer = get_tracer(__name__)

# Nominal cooldown after a non rate-limit failure, so a broken key is not
# picked again within the same call.
FAILURE_COOLDOWN_SECONDS = 1

_FALLBACK_KINDS = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.UNAUTHORIZED,
        ErrorKind.SERVER_ERROR,
        ErrorKind.TRANSPORT_ERROR,
        ErrorKind.EMPTY_RESPONSE,
    }
)


class ProviderClient:
    """Tries one provider's credentials in order until one succeeds.

    Each call walks the cooldown table: the first available credential is
    attempted, rate-limited credentials are parked for the provider's
    retry-after hint, and other failures park the credential for one second.
    Every credential is attempted at most once per call, so the number of
    network requests is bounded by the number of credentials.

    Optionally wraps calls in a circuit breaker that fails fast after
    repeated provider-side failures.
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        credentials: Sequence[Credential],
        *,
        http_client: httpx.AsyncClient | None = None,
        executor: ProviderRequestExecutor | None = None,
        system_prompt: SystemPromptSource | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        now_ms: Callable[[], float] | None = None,
        circuit_breaker_fail_max: int = 0,
        circuit_breaker_timeout: float = 60.0,
    ) -> None:
        """Initialize the client.

        Args:
            adapter: Provider-specific request/response translation.
            credentials: Keys in preference order.
            http_client: Shared HTTP client for the executor.
            executor: Pre-built executor (overrides ``http_client``).
            system_prompt: Source of this provider's directive.
            timeout_seconds: Per-attempt timeout.
            now_ms: Millisecond clock for the cooldown table.
            circuit_breaker_fail_max: Open the circuit after this many failed
                calls. 0 disables the breaker.
            circuit_breaker_timeout: Seconds before a half-open retry.

        Raises:
            LLMConfigurationError: If no credentials are given.
        """
        if not credentials:
            raise LLMConfigurationError(
                f"At least one {adapter.name} API key is required",
                provider=adapter.name,
            )

        self._adapter = adapter
        self._table = KeyCooldownTable(credentials, now_ms=now_ms)
        self._executor = executor or ProviderRequestExecutor(
            adapter,
            http_client=http_client,
            timeout_seconds=timeout_seconds,
        )
        self._system_prompt = CachedSystemPrompt(system_prompt)

        self._breaker: CircuitBreaker | None = None
        if circuit_breaker_fail_max > 0:
            self._breaker = CircuitBreaker(
                fail_max=circuit_breaker_fail_max,
                timeout_duration=timedelta(seconds=circuit_breaker_timeout),
                exclude=[LLMRateLimitError, LLMInvalidRequestError],
            )

    @property
    def name(self) -> str:
        return self._adapter.name

    @property
    def cooldowns(self) -> KeyCooldownTable:
        """The cooldown table owned by this client."""
        return self._table

    def is_fallback_eligible(self, error: LLMProviderError) -> bool:
        """Whether another provider should be tried after ``error``."""
        if error.kind == ErrorKind.UNAUTHORIZED:
            return self._adapter.fallback_on_unauthorized
        return error.kind in _FALLBACK_KINDS

    async def complete(
        self,
        request: CompletionRequest,
        *,
        deadline: float | None = None,
    ) -> CompletionResult:
        """Generate a completion using the first credential that works.

        Args:
            request: The completion request.
            deadline: Optional ``time.monotonic()`` value after which no new
                attempt is started.

        Returns:
            The completion result, tagged with provider and credential index.

        Raises:
            AllCredentialsExhaustedError: If every credential is cooling down.
            LLMProviderError: The last classified failure otherwise.
        """
        with tracer.start_as_current_span("llm.provider.complete") as span:
            span.set_attribute("llm.provider", self.name)
            span.set_attribute("llm.credential_count", len(self._table))

            try:
                if self._breaker is None:
                    result = await self._complete_across_credentials(request, deadline)
                else:
                    result = await self._complete_through_breaker(request, deadline)
            except LLMProviderError as e:
                span.record_exception(e)
                span.set_attribute("llm.outcome", e.kind.value if e.kind else "error")
                raise

            span.set_attribute("llm.outcome", "success")
            span.set_attribute("llm.credential_index", result.credential_index or 0)
            return result

    async def _complete_through_breaker(
        self,
        request: CompletionRequest,
        deadline: float | None,
    ) -> CompletionResult:
        failures: list[LLMProviderError] = []

        async def attempt() -> CompletionResult:
            try:
                return await self._complete_across_credentials(request, deadline)
            except LLMProviderError as e:
                failures.append(e)
                raise

        try:
            return await self._breaker.call_async(attempt)
        except CircuitBreakerError as e:
            if failures:
                # The breaker tripped on this call; surface the failure itself.
                logger.warning(
                    "circuit_breaker_opened",
                    provider=self.name,
                    kind=failures[-1].kind.value if failures[-1].kind else None,
                )
                raise failures[-1] from e
            logger.warning("circuit_breaker_open", provider=self.name)
            raise LLMServerError(
                "Service temporarily unavailable. Please try again in a moment.",
                provider=self.name,
            ) from e

    async def _complete_across_credentials(
        self,
        request: CompletionRequest,
        deadline: float | None,
    ) -> CompletionResult:
        system_prompt = request.system_prompt or await self._system_prompt()

        attempted: set[int] = set()
        last_error: ClassifiedError | None = None

        while len(attempted) < len(self._table):
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(
                    "llm_deadline_exceeded",
                    provider=self.name,
                    attempts=len(attempted),
                )
                raise LLMTimeoutError(
                    "Request deadline exceeded before the next attempt",
                    provider=self.name,
                    classified=last_error,
                )

            index = self._table.pick_available()

            if index is None:
                raise self._exhausted(last_error)

            if index in attempted:
                # Same key handed out twice (a concurrent call cleared it);
                # park it briefly to force progress.
                self._table.mark_cooldown(index, FAILURE_COOLDOWN_SECONDS)
                continue

            attempted.add(index)
            outcome = await self._executor.execute(
                self._table.credential(index),
                request,
                system_prompt=system_prompt,
                credential_index=index,
            )

            if isinstance(outcome, CompletionResult):
                return replace(outcome, provider=self.name, credential_index=index)

            last_error = outcome
            self._log_failure(index, outcome)

            match outcome:
                case RateLimited(retry_after_seconds=wait):
                    self._table.mark_cooldown(index, wait or DEFAULT_RATE_LIMIT_SECONDS)
                case InvalidRequest():
                    raise error_from_classified(outcome, provider=self.name)
                case Unauthorized() if not self._adapter.retry_unauthorized:
                    self._table.mark_cooldown(index, FAILURE_COOLDOWN_SECONDS)
                    raise error_from_classified(outcome, provider=self.name)
                case _:
                    self._table.mark_cooldown(index, FAILURE_COOLDOWN_SECONDS)

        if last_error is None or isinstance(last_error, RateLimited):
            raise self._exhausted(last_error)
        raise error_from_classified(last_error, provider=self.name)

    def _exhausted(self, last_error: ClassifiedError | None) -> AllCredentialsExhaustedError:
        wait = self._table.earliest_wait_seconds()
        if wait is None and isinstance(last_error, RateLimited):
            wait = last_error.retry_after_seconds

        logger.warning(
            "llm_credentials_exhausted",
            provider=self.name,
            credential_count=len(self._table),
            retry_after_seconds=wait,
        )
        return AllCredentialsExhaustedError(
            f"All {self.name} API keys are rate limited",
            provider=self.name,
            retry_after_seconds=wait,
            classified=last_error,
        )

    def _log_failure(self, index: int, error: ClassifiedError) -> None:
        logger.warning(
            "llm_attempt_failed",
            provider=self.name,
            credential_index=index,
            kind=error.kind.value,
            status=error.status,
            retry_after_seconds=getattr(error, "retry_after_seconds", None),
        )

    async def aclose(self) -> None:
        """Release the executor's HTTP client if it owns one."""
        await self._executor.aclose()
