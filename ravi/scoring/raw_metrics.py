"""Raw per-provider metrics from search-engine snippets.

For each (entity, provider) pair we search for "<entity> <provider keyword>"
and score the ranked hits: every hit is a mention, prominence decays with
rank and is weighted by source credibility, and each snippet casts a
positive/negative sentiment vote.
"""

import asyncio
from collections.abc import Sequence

import structlog

from ravi.entities.resolver import Entity
from ravi.observation.gateway import with_timeout
from ravi.observation.models import ProviderType, SearchResult
from ravi.observation.parser import quick_sentiment_score, source_weight
from ravi.observation.search import SearchClient, dedupe_by_link
from ravi.scoring.models import RawMetrics

logger = structlog.get_logger(__name__)

PROVIDER_SEARCH_KEYWORDS: dict[ProviderType, list[str]] = {
    ProviderType.CHATGPT: ["chatgpt"],
    ProviderType.GEMINI: ["gemini ai"],
    ProviderType.CLAUDE: ["claude ai"],
    ProviderType.PERPLEXITY: ["perplexity ai"],
}

FAST_RESULT_LIMIT = 10
FULL_RESULT_LIMIT = 15

# A snippet votes positive/negative only beyond these sentiment scores
POSITIVE_THRESHOLD = 0.1
NEGATIVE_THRESHOLD = -0.1


def search_keywords(provider_type: ProviderType) -> list[str]:
    return PROVIDER_SEARCH_KEYWORDS.get(provider_type, [provider_type.value])


def compute_raw_metrics(results: Sequence[SearchResult]) -> RawMetrics:
    """Score an ordered list of search hits (rank 1 first)."""
    metrics = RawMetrics()
    for rank, result in enumerate(results, start=1):
        metrics.mentions += 1
        metrics.prominence += (1 / rank) * source_weight(result.link)

        score = quick_sentiment_score(result.text)
        if score > POSITIVE_THRESHOLD:
            metrics.positive += 1
        elif score < NEGATIVE_THRESHOLD:
            metrics.negative += 1

    if metrics.mentions:
        metrics.sentiment = (metrics.positive - metrics.negative) / metrics.mentions
    metrics.brand_mentions = metrics.mentions
    return metrics


class RawMetricsAggregator:
    """Collects RawMetrics for every (entity, provider) pair in parallel."""

    def __init__(self, search: SearchClient, timeout: float = 9.0, fast: bool = True):
        self.search = search
        self.timeout = timeout
        self.fast = fast

    async def fetch_results(self, entity: Entity, provider_type: ProviderType) -> list[SearchResult]:
        """Search hits for an entity in the context of one provider.

        Fast mode uses the first keyword and keeps the top 10; full mode uses
        every keyword and keeps up to 15 unique links.
        """
        keywords = search_keywords(provider_type)

        if self.fast:
            query = f"{entity.name} {keywords[0]}"
            results = await with_timeout(self.search.search(query, FAST_RESULT_LIMIT), self.timeout, [])
            return dedupe_by_link(results, limit=FAST_RESULT_LIMIT)

        batches = await asyncio.gather(
            *(
                with_timeout(self.search.search(f"{entity.name} {keyword}"), self.timeout, [])
                for keyword in keywords
            )
        )
        merged = [r for batch in batches for r in batch]
        return dedupe_by_link(merged, limit=FULL_RESULT_LIMIT)

    async def _collect_one(self, entity: Entity, provider_type: ProviderType) -> RawMetrics:
        results = await self.fetch_results(entity, provider_type)
        return compute_raw_metrics(results)

    async def collect(
        self,
        entities: Sequence[Entity],
        providers: Sequence[ProviderType],
    ) -> dict[Entity, dict[ProviderType, RawMetrics]]:
        """RawMetrics per entity, per configured provider."""
        pairs = [(entity, provider) for entity in entities for provider in providers]
        metrics = await asyncio.gather(*(self._collect_one(e, p) for e, p in pairs))

        collected: dict[Entity, dict[ProviderType, RawMetrics]] = {e: {} for e in entities}
        for (entity, provider_type), result in zip(pairs, metrics, strict=True):
            collected[entity][provider_type] = result

        logger.info(
            "raw_metrics_collected",
            entities=len(entities),
            providers=[p.value for p in providers],
            pairs_with_results=sum(1 for m in metrics if m.has_results),
        )
        return collected
