"""Typed result records for the aggregation and scoring stages.

Scales: everything is 0-100 internally except per-provider citation scores
and rates (fractions in [0, 1]) and ``ai_scores`` (0-10, display only).
"""

from dataclasses import dataclass, field

from ravi.entities.resolver import Entity
from ravi.observation.models import ProviderType


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def clamp100(value: float) -> float:
    return clamp(value, 0.0, 100.0)


def _by_provider(values: dict[ProviderType, float], digits: int = 2) -> dict[str, float]:
    return {p.value: round(v, digits) for p, v in values.items()}


@dataclass
class RawMetrics:
    """Search-snippet signals for one entity on one provider."""

    mentions: int = 0
    prominence: float = 0.0
    sentiment: float = 0.0  # -1 to 1
    brand_mentions: int = 0
    positive: int = 0
    negative: int = 0

    @property
    def has_results(self) -> bool:
        return self.mentions > 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "mentions": self.mentions,
            "prominence": round(self.prominence, 4),
            "sentiment": round(self.sentiment, 4),
            "brand_mentions": self.brand_mentions,
        }


@dataclass(frozen=True)
class CitationRecord:
    """One citation of an entity in one provider response."""

    provider: ProviderType
    query_index: int
    contribution: float  # 0 to 1
    sentiment: float
    weight: float
    prominence_factor: float
    mention_count: int

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "provider": self.provider.value,
            "query_index": self.query_index,
            "contribution": round(self.contribution, 4),
            "sentiment": round(self.sentiment, 4),
            "weight": self.weight,
            "prominence_factor": round(self.prominence_factor, 4),
            "mention_count": self.mention_count,
        }


@dataclass
class ProviderCitation:
    """Citation tallies for one entity on one provider."""

    raw: float = 0.0
    mentions: int = 0
    total_queries: int = 0

    @property
    def citation_score(self) -> float:
        return self.raw / self.total_queries if self.total_queries else 0.0

    @property
    def citation_rate(self) -> float:
        return self.mentions / self.total_queries if self.total_queries else 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "citation_count": self.mentions,
            "total_queries": self.total_queries,
            "raw_citation_score": round(self.raw, 4),
            "citation_score": round(self.citation_score, 4),
            "citation_rate": round(self.citation_rate, 4),
            "display_score": round(clamp100(self.citation_score * 100), 2),
        }


@dataclass
class GlobalCitation:
    """Citation tallies for one entity across providers."""

    raw: float = 0.0
    mentions: int = 0
    total_queries: int = 0
    score_volume_weighted: float = 0.0
    score_equal_weighted: float = 0.0
    citation_rate: float = 0.0
    citation_rate_smoothed: float = 0.5
    confidence: float = 0.0
    models_available: list[ProviderType] = field(default_factory=list)

    @property
    def display_score_volume(self) -> float:
        return clamp100(self.score_volume_weighted * 100)

    @property
    def display_score_equal(self) -> float:
        return clamp100(self.score_equal_weighted * 100)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "citation_count": self.mentions,
            "total_queries": self.total_queries,
            "raw_citation_score": round(self.raw, 4),
            "score_volume_weighted": round(self.score_volume_weighted, 4),
            "score_equal_weighted": round(self.score_equal_weighted, 4),
            "citation_rate": round(self.citation_rate, 4),
            "citation_rate_smoothed": round(self.citation_rate_smoothed, 4),
            "display_score_volume": round(self.display_score_volume, 2),
            "display_score_equal": round(self.display_score_equal, 2),
            "confidence": round(self.confidence, 4),
            "models_available": [p.value for p in self.models_available],
        }


@dataclass
class CitationScores:
    """Per-provider and global citation results for one entity."""

    per_provider: dict[ProviderType, ProviderCitation] = field(default_factory=dict)
    global_: GlobalCitation = field(default_factory=GlobalCitation)
    records: list[CitationRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "per_provider": {p.value: c.to_dict() for p, c in self.per_provider.items()},
            "global": self.global_.to_dict(),
        }


@dataclass
class TrafficShare:
    """Share of successful probe responses that mention an entity."""

    by_model: dict[ProviderType, float] = field(default_factory=dict)  # 0 to 100
    global_share: float = 0.0
    weighted_global: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "by_model": _by_provider(self.by_model),
            "global": round(self.global_share, 2),
            "weighted_global": round(self.weighted_global, 2),
        }


@dataclass
class CompositeIndex:
    """The RAVI composite: raw weighted sum plus its display rounding."""

    raw: float = 0.0
    rounded: float = 0.0
    components: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "raw": self.raw,
            "rounded": self.rounded,
            "components": dict(self.components),
        }


@dataclass
class EntityScores:
    """Everything computed for one entity in one run."""

    entity: Entity
    raw_metrics: dict[ProviderType, RawMetrics] = field(default_factory=dict)
    ai_scores: dict[ProviderType, float] = field(default_factory=dict)  # 0 to 10
    traffic_share: TrafficShare = field(default_factory=TrafficShare)
    citation: CitationScores = field(default_factory=CitationScores)
    composite_index: CompositeIndex = field(default_factory=CompositeIndex)

    @property
    def name(self) -> str:
        return self.entity.name

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.entity.name,
            "canonical_key": self.entity.canonical_key,
            "raw_metrics": {p.value: m.to_dict() for p, m in self.raw_metrics.items()},
            "ai_scores": _by_provider(self.ai_scores, digits=4),
            "traffic_share": self.traffic_share.to_dict(),
            "citation": self.citation.to_dict(),
            "composite_index": self.composite_index.to_dict(),
        }
