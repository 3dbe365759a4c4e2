"""Tests for traffic share aggregation."""

import pytest

from ravi.entities.resolver import resolve_entity
from ravi.observation.gateway import ProviderGateway
from ravi.observation.models import ProviderResponse, ProviderType, Query
from ravi.observation.providers import MockProvider
from ravi.scoring.traffic_share import (
    TrafficShareAggregator,
    aggregate_traffic_share,
    build_traffic_prompt,
)

ACME = resolve_entity("Acme")
BETA = resolve_entity("Beta")


def _response(provider: ProviderType, index: int, text: str) -> ProviderResponse:
    return ProviderResponse.from_text(provider, index, text)


class TestAggregateTrafficShare:
    """Tests for aggregate_traffic_share."""

    def test_shares_per_model_and_global(self) -> None:
        """Shares are mentions over successful responses, per model and overall."""
        responses = [
            _response(ProviderType.CHATGPT, 0, "Acme is the pick"),
            _response(ProviderType.CHATGPT, 1, "Gamma is the pick"),
            _response(ProviderType.GEMINI, 0, "Gamma again"),
        ]

        shares = aggregate_traffic_share(responses, [ACME, BETA])

        acme = shares[ACME]
        assert acme.by_model == {ProviderType.CHATGPT: 50.0, ProviderType.GEMINI: 0.0}
        assert acme.global_share == pytest.approx(100 / 3)
        assert acme.weighted_global == pytest.approx(25.0)
        assert shares[BETA].global_share == 0.0

    def test_failed_responses_are_ignored(self) -> None:
        """Empty responses count toward nothing."""
        responses = [
            _response(ProviderType.CHATGPT, 0, "Acme"),
            _response(ProviderType.CHATGPT, 1, ""),
            _response(ProviderType.CLAUDE, 0, "   "),
        ]

        share = aggregate_traffic_share(responses, [ACME])[ACME]

        assert share.by_model == {ProviderType.CHATGPT: 100.0}
        assert share.global_share == 100.0

    def test_no_successful_responses(self) -> None:
        """Nothing succeeded, every share is zero."""
        share = aggregate_traffic_share([_response(ProviderType.CHATGPT, 0, "")], [ACME])[ACME]

        assert share.by_model == {}
        assert share.global_share == 0.0
        assert share.weighted_global == 0.0

    def test_alias_variants_count(self) -> None:
        """Mentions are matched through the alias set."""
        responses = [_response(ProviderType.CHATGPT, 0, "Try acme.com today")]

        assert aggregate_traffic_share(responses, [ACME])[ACME].global_share == 100.0

    def test_to_dict(self) -> None:
        """Dict form keys providers by name and rounds."""
        responses = [
            _response(ProviderType.CHATGPT, 0, "Acme"),
            _response(ProviderType.CHATGPT, 1, "no"),
            _response(ProviderType.CHATGPT, 2, "no"),
        ]

        d = aggregate_traffic_share(responses, [ACME])[ACME].to_dict()

        assert d == {"by_model": {"chatgpt": 33.33}, "global": 33.33, "weighted_global": 33.33}


class TestTrafficShareAggregator:
    """Tests for TrafficShareAggregator."""

    def test_prompt_lists_vendors(self) -> None:
        """The prompt names the query and every vendor."""
        prompt = build_traffic_prompt(Query(text="best crm", index=0), [ACME, BETA])

        assert '"best crm"' in prompt
        assert "Acme, Beta" in prompt

    def test_one_call_per_provider_and_query(self) -> None:
        """Calls cover providers x queries."""
        aggregator = TrafficShareAggregator(ProviderGateway({}))
        queries = [Query(text="q0", index=0), Query(text="q1", index=1)]

        calls = aggregator.build_calls(queries, [ACME], [ProviderType.CHATGPT, ProviderType.GEMINI])

        assert [(c.provider, c.query.index) for c in calls] == [
            (ProviderType.CHATGPT, 0),
            (ProviderType.CHATGPT, 1),
            (ProviderType.GEMINI, 0),
            (ProviderType.GEMINI, 1),
        ]

    @pytest.mark.asyncio
    async def test_collect(self) -> None:
        """Collect fans out and aggregates the joined responses."""
        gateway = ProviderGateway(
            {
                ProviderType.CHATGPT: MockProvider(responder=lambda p: "Acme leads"),
                ProviderType.CLAUDE: MockProvider(responder=lambda p: "Beta leads"),
            },
            retry_base_seconds=0.0,
        )
        queries = [Query(text="q0", index=0)]

        shares, responses = await TrafficShareAggregator(gateway, timeout=1.0).collect(
            queries, [ACME, BETA], [ProviderType.CHATGPT, ProviderType.CLAUDE]
        )

        assert len(responses) == 2
        assert shares[ACME].by_model == {ProviderType.CHATGPT: 100.0, ProviderType.CLAUDE: 0.0}
        assert shares[BETA].weighted_global == 50.0
