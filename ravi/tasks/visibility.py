"""Visibility analysis task: one full RAVI run for a target and its peers."""

import time
from dataclasses import dataclass, field

import structlog

from ravi.config import Settings, get_settings
from ravi.entities.mentions import MentionDetector
from ravi.entities.resolver import Entity, dedupe_entity_names, resolve_entity
from ravi.events import EventSink, NullSink, RunCompleted, build_sink, emit_in_background
from ravi.observation.gateway import ProviderGateway, with_timeout
from ravi.observation.models import ProviderResponse, ProviderType, Query
from ravi.observation.search import GoogleSearchClient, SearchClient
from ravi.questions.context import IndustryContext, detect_industry_and_product
from ravi.questions.pool import GeoContext, build_query_pool
from ravi.scoring.citation import CitationAggregator
from ravi.scoring.models import EntityScores
from ravi.scoring.normalizer import compute_composite_index, normalize_and_score
from ravi.scoring.raw_metrics import RawMetricsAggregator
from ravi.scoring.traffic_share import TrafficShareAggregator

logger = structlog.get_logger(__name__)


@dataclass
class VisibilityRequest:
    """Input for one analysis run."""

    target_entity: str
    peer_entities: list[str] = field(default_factory=list)
    industry: str = ""
    product: str = ""
    fast_mode: bool = True
    geo_context: GeoContext | None = None

    def __post_init__(self) -> None:
        self.target_entity = (self.target_entity or "").strip()
        if not self.target_entity:
            raise ValueError("target_entity must not be empty")


@dataclass
class VisibilityReport:
    """Output of one analysis run."""

    target: str
    industry: str
    product: str
    queries: list[Query]
    entities: list[EntityScores]
    service_status: dict[ProviderType, bool]
    models_available: list[ProviderType]
    fast_mode: bool = True
    duration_ms: float = 0.0

    def scores_for(self, name: str) -> EntityScores | None:
        """Look up an entity's scores by display name."""
        for scores in self.entities:
            if scores.entity.name == name:
                return scores
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "target": self.target,
            "industry": self.industry,
            "product": self.product,
            "fast_mode": self.fast_mode,
            "queries": [q.text for q in self.queries],
            "entities": [s.to_dict() for s in self.entities],
            "service_status": {p.value: ok for p, ok in self.service_status.items()},
            "models_available": [p.value for p in self.models_available],
            "duration_ms": round(self.duration_ms, 1),
        }


def build_service_status(responses: list[ProviderResponse]) -> dict[ProviderType, bool]:
    """True for each provider that returned at least one usable response."""
    status = {p: False for p in ProviderType.real()}
    for response in responses:
        if response.succeeded and response.provider in status:
            status[response.provider] = True
    return status


class VisibilityAnalyzer:
    """Drives a run: context, query pool, three stages, then scoring.

    The stages run one after another; inside each stage every call starts
    together and the stage waits for all of them before aggregating.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        search: SearchClient,
        sink: EventSink | None = None,
        settings: Settings | None = None,
        detector: MentionDetector | None = None,
    ):
        self.gateway = gateway
        self.search = search
        self.sink = sink or NullSink()
        self.settings = settings or get_settings()
        self.detector = detector or MentionDetector()

    def _resolve_entities(self, request: VisibilityRequest) -> list[Entity]:
        target = resolve_entity(request.target_entity)
        peers = [
            resolve_entity(name)
            for name in dedupe_entity_names([request.target_entity, *request.peer_entities])
        ]
        return [target] + [p for p in peers if p.canonical_key != target.canonical_key]

    async def _detect_context(self, request: VisibilityRequest) -> IndustryContext:
        if request.industry.strip():
            return IndustryContext(industry=request.industry.strip(), product=request.product.strip())

        detected = await with_timeout(
            detect_industry_and_product(
                request.target_entity,
                self.gateway,
                self.search,
                timeout=self.settings.context_timeout_seconds,
            ),
            self.settings.context_timeout_seconds,
            IndustryContext(),
        )
        return IndustryContext(
            industry=detected.industry,
            product=request.product.strip() or detected.product,
        )

    async def analyze(self, request: VisibilityRequest) -> VisibilityReport:
        """Run one analysis. Provider and search failures never propagate."""
        started = time.perf_counter()
        settings = self.settings
        fast = request.fast_mode
        providers = self.gateway.configured_providers

        logger.info(
            "visibility_analysis_started",
            target=request.target_entity,
            peers=len(request.peer_entities),
            fast_mode=fast,
            providers=[p.value for p in providers],
        )

        # =========================================================
        # Step 1: Context and entities
        # =========================================================
        context = await self._detect_context(request)
        entities = self._resolve_entities(request)

        # =========================================================
        # Step 2: Query pool (built once, shared by every stage)
        # =========================================================
        queries = build_query_pool(
            industry=context.industry,
            geo=request.geo_context,
            company_name=request.target_entity,
            product=context.product,
            limit=settings.query_count(fast),
        )

        # =========================================================
        # Step 3: Raw per-provider metrics (search snippets)
        # =========================================================
        raw_metrics = await RawMetricsAggregator(
            self.search,
            timeout=settings.search_timeout(fast),
            fast=fast,
        ).collect(entities, providers)

        # =========================================================
        # Step 4: Traffic share
        # =========================================================
        call_timeout = settings.call_timeout(fast)
        traffic, traffic_responses = await TrafficShareAggregator(
            self.gateway,
            timeout=call_timeout,
        ).collect(queries, entities, providers)

        # =========================================================
        # Step 5: Citation
        # =========================================================
        citations, citation_responses = await CitationAggregator(
            self.gateway,
            detector=self.detector,
            timeout=call_timeout,
        ).collect(queries, entities, providers)

        # =========================================================
        # Step 6: Normalize and score (needs every entity's metrics)
        # =========================================================
        ai_scores = normalize_and_score(raw_metrics, providers)

        results: list[EntityScores] = []
        for entity in entities:
            scores = EntityScores(
                entity=entity,
                raw_metrics=raw_metrics[entity],
                ai_scores=ai_scores.get(entity, {}),
                traffic_share=traffic[entity],
                citation=citations[entity],
            )
            scores.composite_index = compute_composite_index(
                scores.ai_scores,
                scores.traffic_share,
                scores.citation,
                providers,
            )
            results.append(scores)

        report = VisibilityReport(
            target=entities[0].name,
            industry=context.industry,
            product=context.product,
            queries=queries,
            entities=results,
            service_status=build_service_status(traffic_responses + citation_responses),
            models_available=list(providers),
            fast_mode=fast,
            duration_ms=(time.perf_counter() - started) * 1000,
        )

        # =========================================================
        # Step 7: Emit run-completed events (not awaited)
        # =========================================================
        emit_in_background(
            self.sink,
            [RunCompleted.from_scores(s, report.target, report.industry) for s in results],
        )

        logger.info(
            "visibility_analysis_completed",
            target=report.target,
            entities=len(results),
            queries=len(queries),
            ravi=results[0].composite_index.rounded,
            duration_ms=round(report.duration_ms, 1),
        )
        return report


async def run_visibility_analysis(
    request: VisibilityRequest,
    settings: Settings | None = None,
    sink: EventSink | None = None,
) -> VisibilityReport:
    """Build the collaborators from settings and run one analysis."""
    settings = settings or get_settings()
    gateway = ProviderGateway.from_settings(settings)
    search = GoogleSearchClient(
        settings.google_api_key,
        settings.google_cse_id,
        timeout_seconds=settings.search_timeout(request.fast_mode),
        max_attempts=settings.search_max_attempts,
        retry_base_seconds=settings.search_retry_base_seconds,
    )
    analyzer = VisibilityAnalyzer(
        gateway,
        search,
        sink=sink if sink is not None else build_sink(settings),
        settings=settings,
    )
    return await analyzer.analyze(request)
