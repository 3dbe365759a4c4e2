"""Run-completed events.

After a run the orchestrator emits one event per entity and does not wait
for delivery. Storage lives behind an ``EventSink``, so the scoring code has
no I/O side effects of its own.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from redis import Redis
from redis.exceptions import RedisError

from ravi.scoring.models import EntityScores

if TYPE_CHECKING:
    from ravi.config import Settings

logger = structlog.get_logger(__name__)

METRIC_RAVI = "RAVI"
METRIC_TRAFFIC_SHARE = "AI_Traffic_Share"
METRIC_CITATION_SCORE = "CitationScore"

# Deliveries in flight, held until they finish
_pending_deliveries: set[asyncio.Task] = set()


@dataclass(frozen=True)
class MetricRow:
    """One stored metric value (0-100)."""

    metric_name: str
    value: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"metric_name": self.metric_name, "value": self.value}


@dataclass
class RunCompleted:
    """A finished run's scores for one entity."""

    entity_name: str
    canonical_key: str
    target: str
    industry: str
    metrics: list[MetricRow]
    ai_scores: dict[str, float]
    is_target: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_scores(cls, scores: EntityScores, target: str, industry: str) -> "RunCompleted":
        metrics = [
            MetricRow(METRIC_RAVI, scores.composite_index.rounded),
            MetricRow(METRIC_TRAFFIC_SHARE, round(scores.traffic_share.global_share, 2)),
            MetricRow(
                METRIC_CITATION_SCORE,
                round(scores.citation.global_.display_score_volume, 2),
            ),
        ]
        return cls(
            entity_name=scores.entity.name,
            canonical_key=scores.entity.canonical_key,
            target=target,
            industry=industry,
            metrics=metrics,
            ai_scores={p.value: s for p, s in scores.ai_scores.items()},
            is_target=scores.entity.name == target,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "event": "run_completed",
            "entity_name": self.entity_name,
            "canonical_key": self.canonical_key,
            "target": self.target,
            "industry": self.industry,
            "is_target": self.is_target,
            "metrics": [m.to_dict() for m in self.metrics],
            "ai_scores": self.ai_scores,
            "created_at": self.created_at.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class EventSink(ABC):
    """Destination for run-completed events."""

    @abstractmethod
    async def emit(self, event: RunCompleted) -> None:
        """Deliver one event."""
        ...


class NullSink(EventSink):
    """Drops every event."""

    async def emit(self, event: RunCompleted) -> None:
        """Discard the event."""
        return None


class QueueSink(EventSink):
    """Puts events on an in-process asyncio queue."""

    def __init__(self, queue: asyncio.Queue | None = None):
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()

    async def emit(self, event: RunCompleted) -> None:
        """Enqueue the event."""
        await self.queue.put(event)


class RedisSink(EventSink):
    """Pushes events as JSON onto a Redis list."""

    def __init__(
        self,
        connection_factory: Callable[[], Redis],
        list_key: str = "ravi:run-events",
        ttl_seconds: int | None = None,
    ):
        self.connection_factory = connection_factory
        self.list_key = list_key
        self.ttl_seconds = ttl_seconds

    def _push(self, payload: str) -> None:
        conn = self.connection_factory()
        conn.lpush(self.list_key, payload)
        if self.ttl_seconds:
            conn.expire(self.list_key, self.ttl_seconds)

    async def emit(self, event: RunCompleted) -> None:
        """Push the event without blocking the event loop."""
        await asyncio.to_thread(self._push, event.to_json())


def build_sink(settings: "Settings") -> EventSink:
    """Redis when ``redis_url`` is set, otherwise events are dropped."""
    if not settings.redis_url:
        return NullSink()

    from ravi.redis import EVENTS_TTL_SECONDS, get_redis_connection

    url = settings.redis_url
    return RedisSink(
        lambda: get_redis_connection(url),
        list_key=settings.events_list_key,
        ttl_seconds=EVENTS_TTL_SECONDS,
    )


async def deliver(sink: EventSink, events: Sequence[RunCompleted]) -> None:
    """Deliver events one by one; a failed delivery is logged and skipped."""
    for event in events:
        try:
            await sink.emit(event)
        except (RedisError, OSError) as e:
            logger.warning(
                "run_event_delivery_failed",
                entity=event.entity_name,
                sink=type(sink).__name__,
                error=str(e),
            )
        except Exception:
            logger.exception(
                "run_event_delivery_crashed",
                entity=event.entity_name,
                sink=type(sink).__name__,
            )


def emit_in_background(sink: EventSink, events: Sequence[RunCompleted]) -> asyncio.Task:
    """Start delivering events without waiting for them."""
    task = asyncio.ensure_future(deliver(sink, list(events)))
    _pending_deliveries.add(task)
    task.add_done_callback(_pending_deliveries.discard)
    return task


async def drain_pending_deliveries(timeout: float | None = None) -> None:
    """Wait for deliveries still in flight.

    Call before the event loop shuts down (``asyncio.run`` cancels whatever
    is still pending). Deliveries still running after ``timeout`` are left
    to be cancelled.
    """
    loop = asyncio.get_running_loop()
    pending = [t for t in _pending_deliveries if not t.done() and t.get_loop() is loop]
    if not pending:
        return
    _, not_done = await asyncio.wait(pending, timeout=timeout)
    if not_done:
        logger.warning("run_event_delivery_abandoned", pending=len(not_done))
