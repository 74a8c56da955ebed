"""LLM provider abstraction layer."""

from src.infrastructure.llm.client import ProviderClient
from src.infrastructure.llm.cooldown import KeyCooldownTable
from src.infrastructure.llm.exceptions import (
    AllCredentialsExhaustedError,
    AllProvidersExhaustedError,
    LLMConfigurationError,
    LLMEmptyResponseError,
    LLMInvalidRequestError,
    LLMProviderError,
    LLMRateLimitError,
    LLMServerError,
    LLMTimeoutError,
    LLMUnauthorizedError,
)
from src.infrastructure.llm.executor import ProviderRequestExecutor
from src.infrastructure.llm.fallback import FallbackCompletionClient
from src.infrastructure.llm.protocol import CompletionProvider, ProviderAdapter
from src.infrastructure.llm.schemas import (
    Attachment,
    ChatTurn,
    CompletionRequest,
    CompletionResult,
    Credential,
    ErrorKind,
)

__all__ = [
    "AllCredentialsExhaustedError",
    "AllProvidersExhaustedError",
    "Attachment",
    "ChatTurn",
    "CompletionProvider",
    "CompletionRequest",
    "CompletionResult",
    "Credential",
    "ErrorKind",
    "FallbackCompletionClient",
    "KeyCooldownTable",
    "LLMConfigurationError",
    "LLMEmptyResponseError",
    "LLMInvalidRequestError",
    "LLMProviderError",
    "LLMRateLimitError",
    "LLMServerError",
    "LLMTimeoutError",
    "LLMUnauthorizedError",
    "ProviderAdapter",
    "ProviderClient",
    "ProviderRequestExecutor",
]
