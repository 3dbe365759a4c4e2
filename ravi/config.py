"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ravi.observation.models import ProviderType

# Fragments that mark a credential copied from .env.example without editing
PLACEHOLDER_KEY_MARKERS = ("your_", "_here")


def is_valid_api_key(key: str | None) -> bool:
    """Check that a credential is present and not a template placeholder."""
    if not key or not key.strip():
        return False
    lowered = key.strip().lower()
    return not any(marker in lowered for marker in PLACEHOLDER_KEY_MARKERS)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"

    # Text-generation providers
    openai_api_key: str | None = None
    gemini_api_key: str | None = None
    anthropic_api_key: str | None = None
    perplexity_api_key: str | None = None

    openai_model: str = "gpt-3.5-turbo"
    gemini_model: str = "gemini-1.5-flash"
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    perplexity_model: str = "sonar"
    provider_max_tokens: int = 400

    # Search collaborator (Google Custom Search)
    google_api_key: str | None = None
    google_cse_id: str | None = None

    # Per-call timeouts
    fast_timeout_seconds: float = 8.0
    full_timeout_seconds: float = 12.0
    search_fast_timeout_seconds: float = 7.0
    search_full_timeout_seconds: float = 9.0
    context_timeout_seconds: float = 8.0

    # Query pool size (bounds the fan-out to providers x queries)
    fast_query_count: int = 6
    full_query_count: int = 12

    # Retry / backoff
    provider_max_attempts: int = 3
    provider_retry_base_seconds: float = 1.0
    provider_retry_max_seconds: float = 8.0
    search_max_attempts: int = 3
    search_retry_base_seconds: float = 2.0

    # Optional throttling of per-provider calls (None = all at once)
    provider_batch_size: int | None = Field(default=None, ge=1)
    provider_batch_delay_seconds: float = 0.5

    # Run-completed events
    redis_url: str | None = None
    events_list_key: str = "ravi:run-events"
    events_drain_timeout_seconds: float = 10.0

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.env == "test"

    @property
    def search_enabled(self) -> bool:
        """Check if the search collaborator has credentials."""
        return bool(self.google_api_key and self.google_cse_id)

    def api_key_for(self, provider_type: ProviderType) -> str | None:
        """Get the raw credential for a provider."""
        keys = {
            ProviderType.CHATGPT: self.openai_api_key,
            ProviderType.GEMINI: self.gemini_api_key,
            ProviderType.CLAUDE: self.anthropic_api_key,
            ProviderType.PERPLEXITY: self.perplexity_api_key,
        }
        return keys.get(provider_type)

    def model_for(self, provider_type: ProviderType) -> str:
        """Get the model name used for a provider."""
        models = {
            ProviderType.CHATGPT: self.openai_model,
            ProviderType.GEMINI: self.gemini_model,
            ProviderType.CLAUDE: self.anthropic_model,
            ProviderType.PERPLEXITY: self.perplexity_model,
        }
        return models.get(provider_type, "")

    def configured_providers(self) -> list[ProviderType]:
        """Providers with a usable credential, in canonical order."""
        return [p for p in ProviderType.real() if is_valid_api_key(self.api_key_for(p))]

    def call_timeout(self, fast: bool) -> float:
        """Per-call provider timeout for the given mode."""
        return self.fast_timeout_seconds if fast else self.full_timeout_seconds

    def search_timeout(self, fast: bool) -> float:
        """Per-call search timeout for the given mode."""
        return self.search_fast_timeout_seconds if fast else self.search_full_timeout_seconds

    def query_count(self, fast: bool) -> int:
        """Query pool truncation for the given mode."""
        return self.fast_query_count if fast else self.full_query_count


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
