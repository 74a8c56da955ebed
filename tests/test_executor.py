"""Tests for the single-attempt request executor."""

import asyncio
import json

import httpx
import pytest

from src.infrastructure.llm import (
    CompletionRequest,
    CompletionResult,
    Credential,
    ProviderRequestExecutor,
)
from src.infrastructure.llm.executor import parse_retry_after
from src.infrastructure.llm.providers import GroqAdapter
from src.infrastructure.llm.schemas import (
    EmptyResponse,
    InvalidRequest,
    RateLimited,
    ServerError,
    TransportError,
    Unauthorized,
)

CREDENTIAL = Credential(api_key="key-1")
REQUEST = CompletionRequest(user_prompt="hello")


def completion_body(content: object) -> dict[str, object]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_executor(handler, **kwargs) -> ProviderRequestExecutor:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ProviderRequestExecutor(GroqAdapter(), http_client=client, **kwargs)


async def execute(executor: ProviderRequestExecutor):
    return await executor.execute(CREDENTIAL, REQUEST, system_prompt="Be brief.")


class TestParseRetryAfter:
    """Tests for retry-after header parsing."""

    def test_whole_seconds(self) -> None:
        assert parse_retry_after("5") == 5

    def test_leading_digits(self) -> None:
        """Trailing junk after the number should be ignored."""
        assert parse_retry_after(" 12s") == 12

    def test_missing_or_invalid(self) -> None:
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None
        assert parse_retry_after("soon") is None

    def test_zero_is_no_hint(self) -> None:
        assert parse_retry_after("0") is None


class TestExecutorSuccess:
    """Tests for successful attempts."""

    @pytest.mark.asyncio
    async def test_returns_trimmed_text(self) -> None:
        """A 2xx body with text should become a trimmed result."""
        executor = make_executor(
            lambda request: httpx.Response(200, json=completion_body("  hi there \n"))
        )

        outcome = await execute(executor)

        assert isinstance(outcome, CompletionResult)
        assert outcome.content == "hi there"
        assert outcome.attachments == ()

    @pytest.mark.asyncio
    async def test_sends_expected_request(self) -> None:
        """The request should carry bearer auth and the adapter payload."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=completion_body("ok"))

        executor = make_executor(handler)
        await execute(executor)

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.groq.com/openai/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer key-1"

        payload = json.loads(request.content)
        assert payload["model"] == "llama3-8b-8192"
        assert payload["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hello"},
        ]
        assert payload["temperature"] == 0.2
        assert payload["max_tokens"] == 512


class TestExecutorClassification:
    """Tests for failure classification."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_unauthorized(self, status: int) -> None:
        executor = make_executor(
            lambda request: httpx.Response(
                status, json={"error": {"message": "Invalid API Key"}}
            )
        )

        outcome = await execute(executor)

        assert isinstance(outcome, Unauthorized)
        assert outcome.status == status
        assert outcome.message == "Invalid API Key"

    @pytest.mark.asyncio
    async def test_rate_limited_with_hint(self) -> None:
        """A 429 should carry the retry-after value."""
        executor = make_executor(
            lambda request: httpx.Response(
                429, headers={"retry-after": "5"}, json={"error": "slow down"}
            )
        )

        outcome = await execute(executor)

        assert isinstance(outcome, RateLimited)
        assert outcome.retry_after_seconds == 5
        assert outcome.message == "slow down"

    @pytest.mark.asyncio
    async def test_rate_limited_default_hint(self) -> None:
        """A 429 without retry-after should default to ten seconds."""
        executor = make_executor(lambda request: httpx.Response(429))

        outcome = await execute(executor)

        assert isinstance(outcome, RateLimited)
        assert outcome.retry_after_seconds == 10

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        executor = make_executor(lambda request: httpx.Response(503, text="unavailable"))

        outcome = await execute(executor)

        assert isinstance(outcome, ServerError)
        assert outcome.status == 503
        assert outcome.message == "groq API returned 503"

    @pytest.mark.asyncio
    async def test_other_client_error_is_invalid_request(self) -> None:
        executor = make_executor(
            lambda request: httpx.Response(400, json={"message": "bad payload"})
        )

        outcome = await execute(executor)

        assert isinstance(outcome, InvalidRequest)
        assert outcome.status == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [completion_body("   "), completion_body(None), {"choices": []}, ["not", "a", "dict"]],
    )
    async def test_empty_response(self, body: object) -> None:
        """A 2xx without usable text should be an empty response."""
        executor = make_executor(lambda request: httpx.Response(200, json=body))

        outcome = await execute(executor)

        assert isinstance(outcome, EmptyResponse)
        assert outcome.status == 502
        assert outcome.message == "groq API returned empty response"

    @pytest.mark.asyncio
    async def test_connection_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        outcome = await execute(make_executor(handler))

        assert isinstance(outcome, TransportError)
        assert outcome.message == "Unable to connect to LLM service"

    @pytest.mark.asyncio
    async def test_httpx_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        outcome = await execute(make_executor(handler))

        assert isinstance(outcome, TransportError)
        assert "timed out" in outcome.message

    @pytest.mark.asyncio
    async def test_attempt_deadline(self) -> None:
        """A slow provider should be cut off by the attempt timeout."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=completion_body("too late"))

        executor = make_executor(handler, timeout_seconds=0.05)

        outcome = await execute(executor)

        assert isinstance(outcome, TransportError)
        assert outcome.message == "Request timed out after 0.05s"


class TestExecutorLifecycle:
    """Tests for HTTP client ownership."""

    @pytest.mark.asyncio
    async def test_does_not_close_shared_client(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        executor = ProviderRequestExecutor(GroqAdapter(), http_client=client)

        await executor.aclose()

        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_closes_owned_client(self) -> None:
        executor = ProviderRequestExecutor(GroqAdapter())

        await executor.aclose()

        assert executor._client.is_closed
