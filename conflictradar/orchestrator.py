from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from .errors import ErrorCategory, FeedError, log_feed_error
from .fetchers.http import FetchResult
from .fetchers.rss import FeedParser, ParseResult
from .models import Article, BatchResult, Source, SourceReport
from .output.events import EventEmitter
from .processors import Deduplicator, RiskScorer
from .utils.logging import get_logger
from .utils.settings import IngestionConfig

logger = get_logger("cr.orchestrator")

SCHEDULED_LABEL = "scheduled-batch"
MANUAL_LABEL = "manual-request"


class Fetcher(Protocol):
    def fetch(self, url: str) -> FetchResult: ...

    def close(self) -> None: ...


class RunState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    AGGREGATING = "AGGREGATING"


class Orchestrator:
    """Drive one ingestion pass over every enabled source.

    Per source: fetch, parse, score, drop already-seen links, publish. A
    failing source is logged and reported with the counts it reached; the
    pass always finishes with exactly one batch-processed event. Passes never overlap: a
    trigger that arrives while one is running is skipped.
    """

    def __init__(
        self,
        config: IngestionConfig,
        *,
        fetcher: Fetcher,
        parser: FeedParser,
        dedup: Deduplicator,
        scorer: RiskScorer,
        emitter: EventEmitter,
    ) -> None:
        self._config = config
        self.fetcher = fetcher
        self.parser = parser
        self.dedup = dedup
        self.scorer = scorer
        self.emitter = emitter

        self._run_lock = threading.Lock()
        self._state = RunState.IDLE
        self._last_result: Optional[BatchResult] = None

    # ---------------- Accessors -----------------
    @property
    def config(self) -> IngestionConfig:
        return self._config

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def last_result(self) -> Optional[BatchResult]:
        return self._last_result

    def sources_info(self) -> Dict[str, Any]:
        sources = self._config.enabled_sources
        return {
            "availableSources": {s.name: s.url for s in sources},
            "totalSources": len(sources),
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }

    def status(self) -> Dict[str, Any]:
        processing = self._config.processing
        last = self._last_result
        return {
            "state": self._state.value,
            "schedulingEnabled": processing.enable_scheduling,
            "intervalSeconds": processing.schedule_interval.total_seconds(),
            "riskThreshold": processing.risk_threshold,
            "sources": [s.name for s in self._config.enabled_sources],
            "lastRun": last.summary() if last else None,
            "publishing": self.emitter.stats.to_dict(),
            "messagingHealthy": self.emitter.is_healthy(),
            "cachedArticles": self.dedup.cached_count(),
        }

    # ---------------- Runs -----------------
    def trigger(self) -> Optional[BatchResult]:
        """Run one pass now, outside the schedule."""
        return self.run_once(MANUAL_LABEL)

    def run_once(self, label: str = SCHEDULED_LABEL) -> Optional[BatchResult]:
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Ingestion run already in progress; skipping %s trigger", label)
            return None
        try:
            return self._run(label)
        finally:
            self._state = RunState.IDLE
            self._run_lock.release()

    def _run(self, label: str) -> BatchResult:
        sources = self._config.enabled_sources
        started_at = datetime.now(timezone.utc)
        t0 = time.perf_counter()
        self._state = RunState.RUNNING
        logger.info("Starting %s ingestion for %d source(s)", label, len(sources))

        purged = self.dedup.purge_expired()
        if purged:
            logger.debug("Dropped %d expired dedup record(s)", purged)

        reports = self._process_all(sources)

        self._state = RunState.AGGREGATING
        duration_ms = int((time.perf_counter() - t0) * 1000)
        batch = BatchResult(
            source_label=label,
            total_articles=sum(r.total_articles for r in reports),
            new_articles=sum(r.new_articles for r in reports),
            high_risk_articles=sum(r.high_risk_articles for r in reports),
            duration_ms=duration_ms,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            sources=tuple(reports),
        )
        self.emitter.publish_batch_processed(batch)
        self._last_result = batch

        logger.info(
            "Ingestion %s finished: total=%d, new=%d, high_risk=%d, failed_sources=%d in %dms",
            label,
            batch.total_articles,
            batch.new_articles,
            batch.high_risk_articles,
            len(batch.failed_sources),
            duration_ms,
        )
        return batch

    def _process_all(self, sources: tuple[Source, ...]) -> List[SourceReport]:
        if not sources:
            return []
        workers = min(self._config.processing.max_workers, len(sources))
        if workers <= 1:
            return [self._process_source_safely(s) for s in sources]

        logger.debug("Processing %d sources concurrently (workers=%d)", len(sources), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as executor:
            # map keeps the configured source order in the reports
            return list(executor.map(self._process_source_safely, sources))

    def _process_source_safely(self, source: Source) -> SourceReport:
        try:
            return self._process_source(source)
        except Exception:  # noqa: BLE001 - one source must never abort the run
            logger.exception("Unexpected failure processing %s (%s)", source.name, source.url)
            return SourceReport(name=source.name, url=source.url, error=ErrorCategory.UNKNOWN)

    def _process_source(self, source: Source) -> SourceReport:
        logger.debug("Processing %s: %s", source.name, source.url)
        articles, error = self._load(source.url)
        if error is not None:
            log_feed_error(logger, source.name, error)
            return SourceReport(name=source.name, url=source.url, error=error.category)

        threshold = self._config.processing.risk_threshold
        new = high_risk = 0
        failure: Optional[ErrorCategory] = None
        try:
            for article in articles:
                # score before claiming so a scoring failure leaves the link unseen
                scored = self.scorer.analyze(article.with_source(source.name), source.weight)
                if not self.dedup.claim(article.link):
                    continue
                new += 1
                self.emitter.publish_news_ingested(scored)
                if scored.risk_score > threshold:
                    high_risk += 1
                    self.emitter.publish_high_risk_detected(scored)
        except Exception:  # noqa: BLE001 - keep what was already published
            logger.exception("Processing %s stopped after %d new article(s)", source.name, new)
            failure = ErrorCategory.UNKNOWN

        logger.info(
            "Processed %s: %d total, %d new, %d high risk",
            source.name,
            len(articles),
            new,
            high_risk,
        )
        return SourceReport(
            name=source.name,
            url=source.url,
            total_articles=len(articles),
            new_articles=new,
            high_risk_articles=high_risk,
            error=failure,
        )

    def _load(self, url: str) -> tuple[tuple[Article, ...], Optional[FeedError]]:
        fetched = self.fetcher.fetch(url)
        if fetched.error is not None:
            return (), fetched.error
        parsed: ParseResult = self.parser.parse(fetched.content or b"", url=url)
        if parsed.error is not None:
            return (), parsed.error
        return parsed.articles, None

    def close(self) -> None:
        self.fetcher.close()

    # ---------------- Ad-hoc analysis -----------------
    def analyze_feed(self, url: str, *, weight: float = 1.0, label: str = "") -> List[Article]:
        """Fetch and score one feed without deduplication or events.

        Returns the articles sorted by descending risk; an empty list when the
        feed cannot be fetched or parsed.
        """
        articles, error = self._load(url)
        if error is not None:
            log_feed_error(logger, label or url, error)
            return []
        scored = [self.scorer.analyze(a.with_source(label or url), weight) for a in articles]
        return sorted(scored, key=lambda a: a.risk_score, reverse=True)
