"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.infrastructure.llm.schemas import Credential


def _secret_value(secret: SecretStr | None) -> str:
    return secret.get_secret_value().strip() if secret is not None else ""


def _pair_credentials(
    keys: list[SecretStr | None],
    agent_ids: list[str | None] | None = None,
) -> list[Credential]:
    """Pair keys with agent ids by position.

    The provider is considered unconfigured unless the primary key is set;
    blank fallback keys are skipped.
    """
    agent_ids = agent_ids or [None] * len(keys)
    if not _secret_value(keys[0]):
        return []

    credentials: list[Credential] = []
    for key, agent_id in zip(keys, agent_ids, strict=True):
        value = _secret_value(key)
        if not value:
            continue
        agent = agent_id.strip() if agent_id and agent_id.strip() else None
        credentials.append(Credential(api_key=value, agent_id=agent))
    return credentials


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Yue"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    # Mistral (primary provider)
    mistral_api_key: SecretStr | None = None
    mistral_api_key_fallback_1: SecretStr | None = None
    mistral_api_key_fallback_2: SecretStr | None = None
    mistral_agent_id: str | None = None
    mistral_agent_id_fallback_1: str | None = None
    mistral_agent_id_fallback_2: str | None = None
    mistral_model: str = "mistral-small-latest"
    mistral_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    mistral_max_tokens: int = Field(default=512, gt=0, le=4096)
    mistral_prompt_path: str | None = None
    mistral_retry_unauthorized: bool = True  # Agent/key pairings can be key-specific

    # Groq (secondary provider)
    groq_api_key: SecretStr | None = None
    groq_api_key_fallback_1: SecretStr | None = None
    groq_api_key_fallback_2: SecretStr | None = None
    groq_model: str = "llama3-8b-8192"
    groq_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    groq_max_tokens: int = Field(default=512, gt=0, le=4096)
    groq_prompt_path: str | None = None
    groq_retry_unauthorized: bool = True

    # Completion pipeline
    llm_timeout_seconds: float = Field(default=12.0, gt=0)  # Per attempt
    llm_request_budget_seconds: float | None = None  # Whole call, across providers
    message_max_chars: int = Field(default=2000, gt=0)  # Transport message limit

    # Circuit breaker (0 = disabled)
    circuit_breaker_fail_max: int = Field(default=0, ge=0)
    circuit_breaker_timeout: float = 60.0

    # Observability
    otel_enabled: bool = False
    otel_exporter_endpoint: str | None = None  # e.g. http://localhost:4318
    otel_console_export: bool = False
    otel_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)

    def mistral_credentials(self) -> list[Credential]:
        """Configured Mistral credentials in preference order."""
        return _pair_credentials(
            [
                self.mistral_api_key,
                self.mistral_api_key_fallback_1,
                self.mistral_api_key_fallback_2,
            ],
            [
                self.mistral_agent_id,
                self.mistral_agent_id_fallback_1,
                self.mistral_agent_id_fallback_2,
            ],
        )

    def groq_credentials(self) -> list[Credential]:
        """Configured Groq credentials in preference order."""
        return _pair_credentials(
            [
                self.groq_api_key,
                self.groq_api_key_fallback_1,
                self.groq_api_key_fallback_2,
            ]
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
