"""Cross-entity normalization and the RAVI composite index.

Per-provider score (0-100 internally, shown as 0-10):
    score100 = 0.35*mentions + 0.30*prominence + 0.20*sentiment + 0.15*brand_mentions
where mentions/prominence/brand_mentions are normalized against the run's
maximum on that provider, and sentiment is rescaled from [-1, 1] to 0-100.

RAVI (0-100):
    0.40*avg_model + 0.25*traffic + 0.20*citation + 0.15*coverage
"""

from collections.abc import Mapping, Sequence

import structlog

from ravi.entities.resolver import Entity
from ravi.observation.models import ProviderType
from ravi.scoring.models import (
    CitationScores,
    CompositeIndex,
    RawMetrics,
    TrafficShare,
    clamp100,
)

logger = structlog.get_logger(__name__)

SCORE_WEIGHTS = {
    "mentions": 0.35,
    "prominence": 0.30,
    "sentiment": 0.20,
    "brand_mentions": 0.15,
}

RAVI_WEIGHTS = {
    "avg_model": 0.40,
    "traffic": 0.25,
    "citation": 0.20,
    "coverage": 0.15,
}


def normalize_to_100(value: float, maximum: float) -> float:
    """``value / maximum * 100``, or 0 when the maximum is 0."""
    if maximum <= 0:
        return 0.0
    return clamp100(value / maximum * 100)


def sentiment_to_100(sentiment: float) -> float:
    return clamp100((sentiment + 1) / 2 * 100)


def provider_maxima(
    raw_metrics: Mapping[Entity, Mapping[ProviderType, RawMetrics]],
    provider_type: ProviderType,
) -> tuple[float, float, float]:
    """Run-wide maxima of (mentions, prominence, brand_mentions) on a provider."""
    rows = [m[provider_type] for m in raw_metrics.values() if provider_type in m]
    if not rows:
        return 0.0, 0.0, 0.0
    return (
        max(r.mentions for r in rows),
        max(r.prominence for r in rows),
        max(r.brand_mentions for r in rows),
    )


def provider_score100(metrics: RawMetrics, maxima: tuple[float, float, float]) -> float:
    """Weighted 0-100 score for one entity on one provider."""
    max_mentions, max_prominence, max_brand = maxima
    mentions = normalize_to_100(metrics.mentions, max_mentions)
    prominence = normalize_to_100(metrics.prominence, max_prominence)
    brand = normalize_to_100(metrics.brand_mentions, max_brand)
    # Sentiment only counts when the entity had at least one result
    sentiment = sentiment_to_100(metrics.sentiment) if metrics.has_results else 0.0

    score = (
        SCORE_WEIGHTS["mentions"] * mentions
        + SCORE_WEIGHTS["prominence"] * prominence
        + SCORE_WEIGHTS["sentiment"] * sentiment
        + SCORE_WEIGHTS["brand_mentions"] * brand
    )
    return clamp100(score)


def normalize_and_score(
    raw_metrics: Mapping[Entity, Mapping[ProviderType, RawMetrics]],
    providers: Sequence[ProviderType],
) -> dict[Entity, dict[ProviderType, float]]:
    """Per-provider ai_scores (0-10, 4 decimals) for every entity.

    Must run after every entity's raw metrics are in, since normalization is
    relative to the run's maxima.
    """
    maxima = {p: provider_maxima(raw_metrics, p) for p in providers}

    scores: dict[Entity, dict[ProviderType, float]] = {}
    for entity, per_provider in raw_metrics.items():
        scores[entity] = {
            p: round(provider_score100(per_provider.get(p, RawMetrics()), maxima[p]) / 10, 4)
            for p in providers
        }
    return scores


def coverage_percent(ai_scores: Mapping[ProviderType, float], providers: Sequence[ProviderType]) -> float:
    """Percentage of configured providers on which the entity scored above 0."""
    if not providers:
        return 0.0
    covered = sum(1 for p in providers if ai_scores.get(p, 0.0) > 0)
    return covered / len(providers) * 100


def compute_composite_index(
    ai_scores: Mapping[ProviderType, float],
    traffic_share: TrafficShare,
    citation: CitationScores,
    providers: Sequence[ProviderType],
) -> CompositeIndex:
    """Combine the four 0-100 components into the RAVI."""
    avg_model = (
        sum(ai_scores.get(p, 0.0) for p in providers) / len(providers) * 10 if providers else 0.0
    )
    components = {
        "avg_model": clamp100(avg_model),
        "traffic": clamp100(traffic_share.global_share),
        "citation": clamp100(citation.global_.score_volume_weighted * 100),
        "coverage": clamp100(coverage_percent(ai_scores, providers)),
    }

    raw = round(sum(RAVI_WEIGHTS[name] * value for name, value in components.items()), 3)
    return CompositeIndex(
        raw=raw,
        rounded=round(clamp100(raw), 1),
        components={name: round(value, 2) for name, value in components.items()},
    )
