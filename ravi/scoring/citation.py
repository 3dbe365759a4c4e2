"""Citation scoring: weighted, prominence-aware mentions in neutral answers.

Each provider answers every pool query briefly. Every entity that passes the
mention detector earns a contribution in [0, 1]: a sentiment weight (five
bins) times a prominence factor (early appearance, recommendation language,
list rank). Contributions are summed per provider and globally, then divided
by the number of queries issued, failed ones included.
"""

from collections.abc import Sequence

import structlog

from ravi.entities.mentions import MentionDetector, aliases_pattern
from ravi.entities.resolver import Entity
from ravi.observation.gateway import ProviderGateway
from ravi.observation.models import ProviderCall, ProviderResponse, ProviderType, Query
from ravi.observation.parser import prominence_factor, quick_sentiment_score, sentiment_weight
from ravi.scoring.models import (
    CitationRecord,
    CitationScores,
    GlobalCitation,
    ProviderCitation,
    clamp01,
)

logger = structlog.get_logger(__name__)

CITATION_PROMPT = "Answer briefly: {query}"

# Laplace smoothing constant for the global citation rate
SMOOTHING_ALPHA = 1

# Mentions needed for full confidence in the global score
CONFIDENCE_MENTIONS = 50


def build_citation_prompt(query: Query) -> str:
    return CITATION_PROMPT.format(query=query.text)


def finalize_citations(
    per_provider: dict[ProviderType, ProviderCitation],
    records: list[CitationRecord] | None = None,
) -> CitationScores:
    """Compute per-provider and global scores from accumulated tallies."""
    used = {p: c for p, c in per_provider.items() if c.total_queries > 0}

    total_raw = sum(c.raw for c in used.values())
    total_mentions = sum(c.mentions for c in used.values())
    total_queries = sum(c.total_queries for c in used.values())

    global_ = GlobalCitation(
        raw=total_raw,
        mentions=total_mentions,
        total_queries=total_queries,
        score_volume_weighted=total_raw / total_queries if total_queries else 0.0,
        score_equal_weighted=(
            sum(c.citation_score for c in used.values()) / len(used) if used else 0.0
        ),
        citation_rate=total_mentions / total_queries if total_queries else 0.0,
        citation_rate_smoothed=(total_mentions + SMOOTHING_ALPHA)
        / (total_queries + 2 * SMOOTHING_ALPHA),
        confidence=min(1.0, total_mentions / CONFIDENCE_MENTIONS),
        models_available=list(used),
    )
    return CitationScores(per_provider=used, global_=global_, records=list(records or []))


def aggregate_citations(
    responses: Sequence[ProviderResponse],
    entities: Sequence[Entity],
    detector: MentionDetector,
) -> dict[Entity, CitationScores]:
    """Score citations for every entity from the joined responses."""
    tallies: dict[Entity, dict[ProviderType, ProviderCitation]] = {e: {} for e in entities}
    records: dict[Entity, list[CitationRecord]] = {e: [] for e in entities}

    for response in responses:
        provider = response.provider
        for entity in entities:
            tallies[entity].setdefault(provider, ProviderCitation()).total_queries += 1

        if not response.succeeded:
            continue

        sentiment = quick_sentiment_score(response.text)
        weight = sentiment_weight(sentiment)

        for entity in entities:
            mention = detector.detect(response.text, entity)
            if not mention.detected:
                continue

            factor = prominence_factor(
                response.text,
                mention.first_position,
                aliases_pattern(entity.aliases),
            )
            contribution = clamp01(min(1, mention.count) * weight * factor)

            tally = tallies[entity][provider]
            tally.raw += contribution
            tally.mentions += 1
            records[entity].append(
                CitationRecord(
                    provider=provider,
                    query_index=response.query_index,
                    contribution=contribution,
                    sentiment=sentiment,
                    weight=weight,
                    prominence_factor=factor,
                    mention_count=mention.count,
                )
            )

    return {e: finalize_citations(tallies[e], records[e]) for e in entities}


class CitationAggregator:
    """Runs the citation stage: one neutral prompt per (provider, query)."""

    def __init__(
        self,
        gateway: ProviderGateway,
        detector: MentionDetector | None = None,
        timeout: float = 8.0,
    ):
        self.gateway = gateway
        self.detector = detector or MentionDetector()
        self.timeout = timeout

    def build_calls(
        self,
        queries: Sequence[Query],
        providers: Sequence[ProviderType],
    ) -> list[ProviderCall]:
        return [
            ProviderCall(provider=p, query=q, prompt=build_citation_prompt(q))
            for p in providers
            for q in queries
        ]

    async def collect(
        self,
        queries: Sequence[Query],
        entities: Sequence[Entity],
        providers: Sequence[ProviderType],
    ) -> tuple[dict[Entity, CitationScores], list[ProviderResponse]]:
        """Fan out the stage and aggregate once every call has finished."""
        if not providers:
            logger.info("citation_stage_skipped", reason="no_configured_providers")
            return {e: finalize_citations({}) for e in entities}, []

        calls = self.build_calls(queries, providers)
        responses = await self.gateway.fan_out(calls, self.timeout)

        logger.info(
            "citation_responses_joined",
            calls=len(calls),
            succeeded=sum(1 for r in responses if r.succeeded),
        )
        return aggregate_citations(responses, entities, self.detector), responses
