"""Single-attempt HTTP executor that classifies provider outcomes."""

import asyncio
import re
from collections.abc import Mapping
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.infrastructure.llm.protocol import FileFetcher, ProviderAdapter
from src.infrastructure.llm.schemas import (
    AttemptOutcome,
    ClassifiedError,
    CompletionRequest,
    CompletionResult,
    Credential,
    EmptyResponse,
    InvalidRequest,
    RateLimited,
    ServerError,
    TransportError,
    Unauthorized,
)
from src.infrastructure.observability import get_tracer

logger = structlog.get_logger()
tracer = get_tracer(__name__)

DEFAULT_TIMEOUT_SECONDS = 12.0
DEFAULT_RATE_LIMIT_SECONDS = 10
# Status reported for failures that never produced a usable upstream response
SYNTHETIC_FAILURE_STATUS = 502

_RETRY_AFTER_PATTERN = re.compile(r"^\s*(\d+)")


def parse_retry_after(value: str | None) -> int | None:
    """Parse a ``retry-after`` header given in whole seconds.

    Args:
        value: Raw header value.

    Returns:
        Positive number of seconds, or None if absent or unparseable.
    """
    if not value:
        return None
    match = _RETRY_AFTER_PATTERN.match(value)
    if not match:
        return None
    seconds = int(match.group(1))
    return seconds if seconds > 0 else None


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class ProviderRequestExecutor:
    """Performs exactly one completion attempt with one credential.

    The executor knows nothing about cooldowns or other credentials. It turns
    whatever happened on the wire into either a ``CompletionResult`` or a
    ``ClassifiedError`` variant and returns it; it does not raise for provider
    failures.
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the executor.

        Args:
            adapter: Provider-specific request/response translation.
            http_client: Shared HTTP client. One is created (and owned) if omitted.
            timeout_seconds: Wall-clock budget for a single attempt.
        """
        self._adapter = adapter
        self._timeout = timeout_seconds
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds)
        )

    @property
    def adapter(self) -> ProviderAdapter:
        return self._adapter

    async def execute(
        self,
        credential: Credential,
        request: CompletionRequest,
        *,
        system_prompt: str,
        credential_index: int | None = None,
    ) -> AttemptOutcome:
        """Run one attempt.

        Args:
            credential: The credential to authenticate with.
            request: The completion request.
            system_prompt: Resolved directive for this provider.
            credential_index: Position of the credential, for logs and spans.

        Returns:
            The completion result, or the classified failure.
        """
        path, payload = self._adapter.build_request(credential, request, system_prompt)

        with tracer.start_as_current_span("llm.attempt") as span:
            span.set_attribute("llm.provider", self._adapter.name)
            if credential_index is not None:
                span.set_attribute("llm.credential_index", credential_index)
            span.set_attribute("llm.message_count", len(payload.get("messages", ())))

            outcome = await self._attempt(path, payload, credential)

            if isinstance(outcome, ClassifiedError):
                span.set_attribute("llm.outcome", outcome.kind.value)
                if outcome.status is not None:
                    span.set_attribute("http.status_code", outcome.status)
            else:
                span.set_attribute("llm.outcome", "success")
                span.set_attribute("llm.output_length", len(outcome.content))
            return outcome

    async def _attempt(
        self,
        path: str,
        payload: dict[str, Any],
        credential: Credential,
    ) -> AttemptOutcome:
        logger.debug(
            "llm_request_start",
            provider=self._adapter.name,
            path=path,
            message_count=len(payload.get("messages", ())),
        )

        try:
            async with asyncio.timeout(self._timeout):
                response = await self._client.post(
                    self._url(path),
                    json=payload,
                    headers=self._headers(credential),
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            return TransportError(
                f"Request timed out after {self._timeout}s",
                status=SYNTHETIC_FAILURE_STATUS,
                payload={"error_type": type(e).__name__},
            )
        except httpx.TransportError as e:
            return TransportError(
                "Unable to connect to LLM service",
                status=SYNTHETIC_FAILURE_STATUS,
                payload={"error_type": type(e).__name__, "error": str(e)},
            )

        if not response.is_success:
            return self._classify_failure(response)

        return await self._decode_success(response, credential)

    def _classify_failure(self, response: httpx.Response) -> ClassifiedError:
        status = response.status_code
        body = _json_or_none(response)
        message = self._adapter.error_message(body, status)

        match status:
            case 401 | 403:
                return Unauthorized(message, status=status, payload=body)
            case 429:
                wait = parse_retry_after(response.headers.get("retry-after"))
                return RateLimited(
                    message,
                    status=status,
                    payload=body,
                    retry_after_seconds=wait or DEFAULT_RATE_LIMIT_SECONDS,
                )
            case _ if status >= 500:
                return ServerError(message, status=status, payload=body)
            case _:
                return InvalidRequest(message, status=status, payload=body)

    async def _decode_success(
        self,
        response: httpx.Response,
        credential: Credential,
    ) -> AttemptOutcome:
        body = _json_or_none(response)
        empty_message = f"{self._adapter.name} API returned empty response"

        if not isinstance(body, Mapping):
            return EmptyResponse(
                empty_message, status=SYNTHETIC_FAILURE_STATUS, payload=body
            )

        text, attachments = await self._adapter.parse_response(
            body, self._file_fetcher(credential)
        )
        content = (text or "").strip()
        if not content:
            return EmptyResponse(
                empty_message, status=SYNTHETIC_FAILURE_STATUS, payload=body
            )

        logger.debug(
            "llm_request_success",
            provider=self._adapter.name,
            response_length=len(content),
            attachment_count=len(attachments),
        )
        return CompletionResult(content=content, attachments=tuple(attachments))

    def _file_fetcher(self, credential: Credential) -> FileFetcher:
        async def fetch(path: str) -> bytes | None:
            try:
                return await self._download(path, credential)
            except httpx.HTTPError as e:
                logger.warning(
                    "llm_attachment_download_failed",
                    provider=self._adapter.name,
                    path=path,
                    error_type=type(e).__name__,
                )
                return None

        return fetch

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, max=2),
        reraise=True,
    )
    async def _download(self, path: str, credential: Credential) -> bytes:
        """Download a provider file, releasing the stream once buffered."""
        async with self._client.stream(
            "GET", self._url(path), headers=self._headers(credential)
        ) as response:
            response.raise_for_status()
            return await response.aread()

    def _url(self, path: str) -> str:
        return f"{self._adapter.base_url.rstrip('/')}/{path.lstrip('/')}"

    @staticmethod
    def _headers(credential: Credential) -> dict[str, str]:
        return {
            "authorization": f"Bearer {credential.api_key}",
            "accept": "application/json",
        }

    async def aclose(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client:
            await self._client.aclose()
