"""Custom exceptions for LLM provider operations."""

from typing import ClassVar

from src.infrastructure.llm.schemas import (
    ClassifiedError,
    EmptyResponse,
    ErrorKind,
    InvalidRequest,
    RateLimited,
    ServerError,
    TransportError,
    Unauthorized,
)


class LLMProviderError(Exception):
    """Base exception for LLM provider errors.

    The message is safe to show to users. It never contains credentials or
    the raw provider payload; the latter stays on ``classified`` for logs.
    """

    kind: ClassVar[ErrorKind | None] = None

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        classified: ClassifiedError | None = None,
    ) -> None:
        self.provider = provider
        self.classified = classified
        super().__init__(message)

    @property
    def status(self) -> int | None:
        """HTTP status of the underlying failure, if any."""
        return self.classified.status if self.classified else None


class LLMUnauthorizedError(LLMProviderError):
    """Raised when the provider rejects the credential (401/403)."""

    kind = ErrorKind.UNAUTHORIZED


class LLMRateLimitError(LLMProviderError):
    """Raised when rate limited by the LLM provider."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        retry_after_seconds: int | None = None,
        classified: ClassifiedError | None = None,
    ) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, provider=provider, classified=classified)


class AllCredentialsExhaustedError(LLMRateLimitError):
    """Raised when every credential of a provider is cooling down."""


class LLMServerError(LLMProviderError):
    """Raised on provider-side failures (5xx or an open circuit)."""

    kind = ErrorKind.SERVER_ERROR


class LLMTimeoutError(LLMProviderError):
    """Raised when a request times out or the connection fails."""

    kind = ErrorKind.TRANSPORT_ERROR


class LLMEmptyResponseError(LLMProviderError):
    """Raised when the provider answers without usable text."""

    kind = ErrorKind.EMPTY_RESPONSE


class LLMInvalidRequestError(LLMProviderError):
    """Raised when the provider rejects the request itself (other 4xx)."""

    kind = ErrorKind.INVALID_REQUEST


class LLMConfigurationError(LLMProviderError):
    """Raised when there's a configuration issue (e.g., missing API key)."""


class AllProvidersExhaustedError(LLMProviderError):
    """Raised when both the primary and the secondary provider failed.

    ``kind`` mirrors the secondary (last) failure. ``retry_after_seconds`` is
    the soonest hint among the rate-limited failures, or None.
    """

    def __init__(
        self,
        primary_error: LLMProviderError,
        secondary_error: LLMProviderError,
    ) -> None:
        self.primary_error = primary_error
        self.secondary_error = secondary_error
        hints = [
            error.retry_after_seconds
            for error in (primary_error, secondary_error)
            if isinstance(error, LLMRateLimitError)
            and error.retry_after_seconds is not None
        ]
        self.retry_after_seconds = min(hints) if hints else None
        super().__init__(
            str(secondary_error),
            provider=secondary_error.provider,
            classified=secondary_error.classified,
        )

    @property
    def kind(self) -> ErrorKind | None:  # type: ignore[override]
        return self.secondary_error.kind


def error_from_classified(
    classified: ClassifiedError, *, provider: str
) -> LLMProviderError:
    """Convert a classified attempt failure into the exception to surface."""
    match classified:
        case RateLimited(retry_after_seconds=wait):
            return LLMRateLimitError(
                classified.message,
                provider=provider,
                retry_after_seconds=wait,
                classified=classified,
            )
        case Unauthorized():
            return LLMUnauthorizedError(
                classified.message, provider=provider, classified=classified
            )
        case ServerError():
            return LLMServerError(
                classified.message, provider=provider, classified=classified
            )
        case TransportError():
            return LLMTimeoutError(
                classified.message, provider=provider, classified=classified
            )
        case EmptyResponse():
            return LLMEmptyResponseError(
                classified.message, provider=provider, classified=classified
            )
        case InvalidRequest():
            return LLMInvalidRequestError(
                classified.message, provider=provider, classified=classified
            )
        case _:
            return LLMProviderError(
                classified.message, provider=provider, classified=classified
            )
