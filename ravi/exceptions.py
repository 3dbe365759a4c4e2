"""Error taxonomy for the visibility engine.

None of these reach the caller of an analysis run: the gateway, the search
client and the context detector catch them at their boundary and degrade to
an empty/neutral value. They exist so that the failure reason is explicit
inside those boundaries and in the logs.
"""

from typing import Any


class RaviError(Exception):
    """Base exception for the visibility engine."""

    def __init__(
        self,
        message: str,
        code: str = "error",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ProviderNotConfiguredError(RaviError):
    """Provider has a missing or placeholder credential."""

    def __init__(self, provider: str):
        super().__init__(
            message=f"{provider} is not configured",
            code="provider_not_configured",
            details={"provider": provider},
        )


class ProviderError(RaviError):
    """A provider call did not produce usable text."""

    def __init__(self, provider: str, message: str, code: str = "provider_error"):
        super().__init__(
            message=f"{provider}: {message}",
            code=code,
            details={"provider": provider},
        )
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    """A provider call exceeded its time budget."""

    def __init__(self, provider: str, timeout_seconds: float):
        super().__init__(
            provider,
            f"timed out after {timeout_seconds}s",
            code="provider_timeout",
        )
        self.timeout_seconds = timeout_seconds


class ProviderCallError(ProviderError):
    """Non-retryable HTTP error or malformed provider payload."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        super().__init__(provider, message, code="provider_call_error")
        self.status_code = status_code


class ProviderRateLimitedError(ProviderError):
    """Provider answered 429/503; the call may be retried with backoff."""

    def __init__(self, provider: str, status_code: int):
        super().__init__(
            provider,
            f"rate limited (HTTP {status_code})",
            code="provider_rate_limited",
        )
        self.status_code = status_code


class SearchUnavailableError(RaviError):
    """Search collaborator is unconfigured or exhausted its retries."""

    def __init__(self, message: str = "Search unavailable"):
        super().__init__(message=message, code="search_unavailable")


class MalformedExtractionError(RaviError):
    """Structured data expected in a free-text reply could not be parsed."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(
            message=message,
            code="malformed_extraction",
            details={"raw": raw[:200]},
        )
