"""Value types for the completion pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Literal

ChatRole = Literal["user", "assistant"]


class ErrorKind(str, Enum):
    """Classification of a failed completion attempt."""

    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    TRANSPORT_ERROR = "transport_error"
    EMPTY_RESPONSE = "empty_response"
    INVALID_REQUEST = "invalid_request"


@dataclass(frozen=True)
class Credential:
    """One API key for one provider.

    Attributes:
        api_key: The secret sent in the authorization header.
        agent_id: Optional routing attribute. Providers with an agent mode
            send requests for this key to the agent endpoint instead of the
            plain chat endpoint.
    """

    api_key: str = field(repr=False)
    agent_id: str | None = None


@dataclass(frozen=True)
class ChatTurn:
    """A prior turn of the conversation."""

    role: ChatRole
    content: str


@dataclass(frozen=True)
class CompletionRequest:
    """An immutable completion request built fresh for every call.

    Attributes:
        user_prompt: The new user message.
        history: Prior turns, oldest first.
        system_prompt: Directive override. When None, each provider resolves
            its own directive lazily.
    """

    user_prompt: str
    history: tuple[ChatTurn, ...] = ()
    system_prompt: str | None = None


@dataclass(frozen=True)
class Attachment:
    """A binary file produced by a tool-augmented response."""

    filename: str
    content_type: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class CompletionResult:
    """A successful completion.

    Attributes:
        content: The answer text, trimmed and never empty.
        attachments: Files extracted from tool output, in response order.
        provider: Name of the provider that answered.
        credential_index: Position of the credential that answered, in
            configuration order.
    """

    content: str
    attachments: tuple[Attachment, ...] = ()
    provider: str = ""
    credential_index: int | None = None


@dataclass(frozen=True)
class ClassifiedError:
    """Outcome of one failed attempt.

    Concrete variants below fix ``kind``; retry and fallback decisions match
    on the variant type rather than on status codes.

    Attributes:
        message: Human-readable summary, safe to surface.
        status: HTTP status (or the 502 equivalent for synthetic failures).
        payload: Raw provider body, kept for diagnostics only.
    """

    kind: ClassVar[ErrorKind]

    message: str
    status: int | None = None
    payload: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class Unauthorized(ClassifiedError):
    """401/403 from the provider."""

    kind: ClassVar[ErrorKind] = ErrorKind.UNAUTHORIZED


@dataclass(frozen=True)
class RateLimited(ClassifiedError):
    """429 from the provider, with the suggested wait in whole seconds."""

    kind: ClassVar[ErrorKind] = ErrorKind.RATE_LIMITED

    retry_after_seconds: int | None = None


@dataclass(frozen=True)
class ServerError(ClassifiedError):
    """5xx from the provider."""

    kind: ClassVar[ErrorKind] = ErrorKind.SERVER_ERROR


@dataclass(frozen=True)
class TransportError(ClassifiedError):
    """Timeout or connection failure before a response arrived."""

    kind: ClassVar[ErrorKind] = ErrorKind.TRANSPORT_ERROR


@dataclass(frozen=True)
class EmptyResponse(ClassifiedError):
    """2xx response without usable text."""

    kind: ClassVar[ErrorKind] = ErrorKind.EMPTY_RESPONSE


@dataclass(frozen=True)
class InvalidRequest(ClassifiedError):
    """Any other 4xx: the request itself was rejected."""

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_REQUEST


AttemptOutcome = CompletionResult | ClassifiedError
