"""Traffic share: how often each entity shows up in provider answers."""

from collections.abc import Sequence

import structlog

from ravi.entities.mentions import is_mentioned
from ravi.entities.resolver import Entity
from ravi.observation.gateway import ProviderGateway
from ravi.observation.models import ProviderCall, ProviderResponse, ProviderType, Query
from ravi.scoring.models import TrafficShare

logger = structlog.get_logger(__name__)

TRAFFIC_PROMPT = (
    'For the topic: "{query}", consider these vendors: {vendors}. '
    "Briefly discuss which of these are most relevant/recommended today. "
    "Mention vendor names directly."
)


def build_traffic_prompt(query: Query, entities: Sequence[Entity]) -> str:
    return TRAFFIC_PROMPT.format(
        query=query.text,
        vendors=", ".join(e.name for e in entities),
    )


def aggregate_traffic_share(
    responses: Sequence[ProviderResponse],
    entities: Sequence[Entity],
) -> dict[Entity, TrafficShare]:
    """Turn joined responses into per-entity traffic shares.

    Only succeeded responses count. A provider with no successful response is
    left out of ``by_model`` and of the global share.
    """
    successful: dict[ProviderType, int] = {}
    mentions: dict[Entity, dict[ProviderType, int]] = {e: {} for e in entities}

    for response in responses:
        if not response.succeeded:
            continue
        provider = response.provider
        successful[provider] = successful.get(provider, 0) + 1
        for entity in entities:
            if is_mentioned(response.text, entity.aliases):
                counts = mentions[entity]
                counts[provider] = counts.get(provider, 0) + 1

    shares: dict[Entity, TrafficShare] = {}
    total_successful = sum(successful.values())

    for entity in entities:
        counts = mentions[entity]
        by_model = {
            provider: counts.get(provider, 0) / total * 100 for provider, total in successful.items()
        }
        total_mentions = sum(counts.get(p, 0) for p in successful)
        shares[entity] = TrafficShare(
            by_model=by_model,
            global_share=total_mentions / total_successful * 100 if total_successful else 0.0,
            weighted_global=sum(by_model.values()) / len(by_model) if by_model else 0.0,
        )

    return shares


class TrafficShareAggregator:
    """Runs the traffic-share stage: one prompt per (provider, query)."""

    def __init__(self, gateway: ProviderGateway, timeout: float = 8.0):
        self.gateway = gateway
        self.timeout = timeout

    def build_calls(
        self,
        queries: Sequence[Query],
        entities: Sequence[Entity],
        providers: Sequence[ProviderType],
    ) -> list[ProviderCall]:
        return [
            ProviderCall(provider=p, query=q, prompt=build_traffic_prompt(q, entities))
            for p in providers
            for q in queries
        ]

    async def collect(
        self,
        queries: Sequence[Query],
        entities: Sequence[Entity],
        providers: Sequence[ProviderType],
    ) -> tuple[dict[Entity, TrafficShare], list[ProviderResponse]]:
        """Fan out the stage and aggregate once every call has finished."""
        calls = self.build_calls(queries, entities, providers)
        responses = await self.gateway.fan_out(calls, self.timeout)

        logger.info(
            "traffic_share_responses_joined",
            calls=len(calls),
            succeeded=sum(1 for r in responses if r.succeeded),
        )
        return aggregate_traffic_share(responses, entities), responses
