"""Pytest configuration and fixtures."""

import os

import pytest

# Set test environment before any app code runs; no real provider may be hit
os.environ["ENV"] = "test"
for _key in (
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "ANTHROPIC_API_KEY",
    "PERPLEXITY_API_KEY",
    "GOOGLE_API_KEY",
    "GOOGLE_CSE_ID",
    "REDIS_URL",
):
    os.environ.pop(_key, None)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Rebuild settings from the test environment for every test."""
    from ravi.config import get_settings

    get_settings.cache_clear()


@pytest.fixture
def settings():
    """Test settings: fast retries, no real credentials."""
    from ravi.config import Settings

    return Settings(
        _env_file=None,
        env="test",
        provider_retry_base_seconds=0.0,
        provider_retry_max_seconds=0.0,
        search_retry_base_seconds=0.0,
        fast_timeout_seconds=2.0,
        full_timeout_seconds=2.0,
        search_fast_timeout_seconds=2.0,
        search_full_timeout_seconds=2.0,
        context_timeout_seconds=2.0,
    )
