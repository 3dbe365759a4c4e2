"""Tests for search-snippet raw metrics."""

import asyncio

import pytest

from ravi.entities.resolver import resolve_entity
from ravi.observation.models import ProviderType, SearchResult
from ravi.observation.search import SearchClient, StaticSearchClient
from ravi.scoring.raw_metrics import (
    RawMetricsAggregator,
    compute_raw_metrics,
    search_keywords,
)

HITS = [
    SearchResult(name="Acme - Home", link="https://acme.com", snippet="Leading platform"),
    SearchResult(name="Acme review", link="https://news.example.com/a", snippet="Poor support, an issue"),
    SearchResult(name="Acme thread", link="https://www.reddit.com/r/x", snippet="meh"),
]


class SlowSearchClient(SearchClient):
    """Search client that never answers in time."""

    async def search(self, query: str, num: int = 10) -> list[SearchResult]:
        await asyncio.sleep(1.0)
        return HITS


class TestComputeRawMetrics:
    """Tests for compute_raw_metrics."""

    def test_scores_ranked_hits(self) -> None:
        """Every hit is a mention; prominence decays with rank and source weight."""
        metrics = compute_raw_metrics(HITS)

        assert metrics.mentions == 3
        assert metrics.brand_mentions == 3
        assert metrics.prominence == pytest.approx(1.0 + 0.5 * 1.5 + 0.5 / 3)
        assert metrics.positive == 1
        assert metrics.negative == 1
        assert metrics.sentiment == 0.0

    def test_no_hits(self) -> None:
        """No hits gives all zeros."""
        metrics = compute_raw_metrics([])

        assert metrics.has_results is False
        assert metrics.prominence == 0.0
        assert metrics.sentiment == 0.0

    def test_sentiment_in_range(self) -> None:
        """Sentiment is the vote balance over hits, within [-1, 1]."""
        metrics = compute_raw_metrics(HITS[:1])

        assert metrics.sentiment == 1.0


class TestSearchKeywords:
    """Tests for search_keywords."""

    def test_known_provider(self) -> None:
        """Each real provider has its own keyword."""
        assert search_keywords(ProviderType.GEMINI) == ["gemini ai"]

    def test_unknown_provider_uses_its_name(self) -> None:
        """Other providers fall back to their own name."""
        assert search_keywords(ProviderType.MOCK) == ["mock"]


class TestRawMetricsAggregator:
    """Tests for RawMetricsAggregator."""

    @pytest.mark.asyncio
    async def test_collects_every_pair(self) -> None:
        """Metrics are collected per entity and provider."""
        search = StaticSearchClient({"Acme chatgpt": HITS})
        acme, beta = resolve_entity("Acme"), resolve_entity("Beta")
        aggregator = RawMetricsAggregator(search, timeout=1.0)

        collected = await aggregator.collect([acme, beta], [ProviderType.CHATGPT, ProviderType.CLAUDE])

        assert collected[acme][ProviderType.CHATGPT].mentions == 3
        assert collected[acme][ProviderType.CLAUDE].mentions == 0
        assert collected[beta][ProviderType.CHATGPT].has_results is False
        assert sorted(search.queries) == sorted(
            ["Acme chatgpt", "Acme claude ai", "Beta chatgpt", "Beta claude ai"]
        )

    @pytest.mark.asyncio
    async def test_full_mode_dedupes_and_caps(self) -> None:
        """Full mode merges results and keeps unique links only."""
        duplicated = HITS + HITS
        search = StaticSearchClient({"Acme": duplicated})
        aggregator = RawMetricsAggregator(search, timeout=1.0, fast=False)

        results = await aggregator.fetch_results(resolve_entity("Acme"), ProviderType.CHATGPT)

        assert [r.link for r in results] == [h.link for h in HITS]

    @pytest.mark.asyncio
    async def test_slow_search_counts_as_empty(self) -> None:
        """A search that misses its deadline contributes no hits."""
        aggregator = RawMetricsAggregator(SlowSearchClient(), timeout=0.01)

        collected = await aggregator.collect([resolve_entity("Acme")], [ProviderType.CHATGPT])

        assert collected[resolve_entity("Acme")][ProviderType.CHATGPT].mentions == 0

    @pytest.mark.asyncio
    async def test_no_providers(self) -> None:
        """No providers, empty per-entity maps."""
        acme = resolve_entity("Acme")

        collected = await RawMetricsAggregator(StaticSearchClient()).collect([acme], [])

        assert collected == {acme: {}}
