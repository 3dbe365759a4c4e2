"""Data models for the observation layer."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class ProviderType(StrEnum):
    """Supported text-generation providers."""

    CHATGPT = "chatgpt"
    GEMINI = "gemini"
    CLAUDE = "claude"
    PERPLEXITY = "perplexity"
    MOCK = "mock"

    @classmethod
    def real(cls) -> list["ProviderType"]:
        """Production providers in canonical order."""
        return [cls.CHATGPT, cls.GEMINI, cls.CLAUDE, cls.PERPLEXITY]


@dataclass(frozen=True)
class Query:
    """One element of the deterministic probe pool."""

    text: str
    index: int

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"text": self.text, "index": self.index}


@dataclass(frozen=True)
class ProviderCall:
    """A single (provider, query) call scheduled by a fan-out stage."""

    provider: ProviderType
    query: Query
    prompt: str


@dataclass
class ProviderFailure:
    """Why a call produced no usable text."""

    provider: ProviderType
    error_type: str
    message: str
    retryable: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "provider": self.provider.value,
            "error_type": self.error_type,
            "message": self.message,
            "retryable": self.retryable,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ProviderResponse:
    """Result of one fan-out call. Immutable once produced."""

    provider: ProviderType
    query_index: int
    text: str
    succeeded: bool
    latency_ms: float = 0.0
    error: ProviderFailure | None = None

    @classmethod
    def from_text(
        cls,
        provider: ProviderType,
        query_index: int,
        text: str,
        latency_ms: float = 0.0,
        error: ProviderFailure | None = None,
    ) -> "ProviderResponse":
        """Build a response; success means non-empty after trimming."""
        text = text or ""
        return cls(
            provider=provider,
            query_index=query_index,
            text=text,
            succeeded=bool(text.strip()),
            latency_ms=latency_ms,
            error=error,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "provider": self.provider.value,
            "query_index": self.query_index,
            "text": self.text[:500] + "..." if len(self.text) > 500 else self.text,
            "succeeded": self.succeeded,
            "latency_ms": round(self.latency_ms, 2),
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass(frozen=True)
class SearchResult:
    """A single search-engine hit."""

    name: str
    link: str
    snippet: str

    @property
    def text(self) -> str:
        """Title and snippet joined for lexical analysis."""
        return f"{self.name}. {self.snippet}"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"name": self.name, "link": self.link, "snippet": self.snippet}
