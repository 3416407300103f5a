from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Protocol

from ..models import Article, BatchProcessedEvent, BatchResult, HighRiskDetectedEvent, NewsIngestedEvent
from ..utils.logging import get_logger
from ..utils.settings import TopicConfig
from .bus import MessageBus

logger = get_logger("cr.output.events")


class _Event(Protocol):
    @property
    def key(self) -> str: ...

    def to_dict(self) -> dict: ...


@dataclass(frozen=True, slots=True)
class PublishingStats:
    published: int = 0
    failed: int = 0
    total_publish_ms: float = 0.0

    @property
    def attempts(self) -> int:
        return self.published + self.failed

    @property
    def success_rate(self) -> float:
        return self.published / self.attempts if self.attempts else 0.0

    @property
    def average_publish_ms(self) -> float:
        return self.total_publish_ms / self.attempts if self.attempts else 0.0

    def to_dict(self) -> dict:
        return {
            "published": self.published,
            "failed": self.failed,
            "attempts": self.attempts,
            "successRate": round(self.success_rate, 4),
            "averagePublishMs": round(self.average_publish_ms, 3),
        }


class EventEmitter:
    """Publish ingestion events on their topics, best effort.

    A failing publish is logged and counted; it never raises into the caller
    and never blocks the publishes that follow.
    """

    def __init__(self, bus: MessageBus, topics: TopicConfig | None = None) -> None:
        self.bus = bus
        self.topics = topics or TopicConfig()
        self._lock = threading.Lock()
        self._published = 0
        self._failed = 0
        self._total_ms = 0.0

    def publish_news_ingested(self, article: Article) -> bool:
        event = NewsIngestedEvent.from_article(article)
        ok = self._send(self.topics.news_ingested, event)
        if ok:
            logger.debug("Sent news ingested event for article %s", article.id)
        return ok

    def publish_high_risk_detected(self, article: Article) -> bool:
        event = HighRiskDetectedEvent.from_article(article)
        ok = self._send(self.topics.high_risk_detected, event)
        if ok:
            logger.warning(
                "ALERT SENT: high risk event %s for article %s (risk: %.2f)",
                event.alert_id,
                article.id,
                article.risk_score,
            )
        return ok

    def publish_batch_processed(self, batch: BatchResult) -> bool:
        event = BatchProcessedEvent.from_batch(batch)
        ok = self._send(self.topics.batch_processed, event)
        if ok:
            logger.info(
                "Sent batch processed event %s (%d total, %d new from %s)",
                event.batch_id,
                batch.total_articles,
                batch.new_articles,
                batch.source_label,
            )
        return ok

    def _send(self, topic: str, event: _Event) -> bool:
        t0 = time.perf_counter()
        try:
            self.bus.send(topic, event.key, event.to_dict())
            ok = True
        except Exception:  # noqa: BLE001 - publishing is best effort
            logger.exception("Failed to publish %s event %s", topic, event.key)
            ok = False
        elapsed_ms = (time.perf_counter() - t0) * 1000
        with self._lock:
            if ok:
                self._published += 1
            else:
                self._failed += 1
            self._total_ms += elapsed_ms
        return ok

    @property
    def stats(self) -> PublishingStats:
        with self._lock:
            return PublishingStats(
                published=self._published,
                failed=self._failed,
                total_publish_ms=self._total_ms,
            )

    def is_healthy(self) -> bool:
        try:
            return self.bus.is_healthy()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Health check failed: %s", exc)
            return False
