from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Tuple

from ..models import Source
from ..processors.risk import KeywordTiers

DEFAULT_USER_AGENTS: Tuple[str, ...] = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:128.0) Gecko/20100101 Firefox/128.0",
    "ConflictRadar/1.0 (+feed ingestion)",
)


@dataclass(frozen=True, slots=True)
class HttpConfig:
    connect_timeout: timedelta = timedelta(seconds=10)
    read_timeout: timedelta = timedelta(seconds=30)
    max_retries: int = 3
    retry_delay: timedelta = timedelta(seconds=1)
    user_agents: Tuple[str, ...] = DEFAULT_USER_AGENTS


@dataclass(frozen=True, slots=True)
class ProcessingConfig:
    schedule_interval: timedelta = timedelta(minutes=5)
    initial_delay: timedelta = timedelta(seconds=30)
    risk_threshold: float = 0.6
    enable_scheduling: bool = True
    max_workers: int = 4


@dataclass(frozen=True, slots=True)
class TopicConfig:
    news_ingested: str = "news.ingested"
    high_risk_detected: str = "news.high-risk"
    batch_processed: str = "news.batch-processed"


@dataclass(frozen=True, slots=True)
class IngestionConfig:
    sources: Tuple[Source, ...] = ()
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    risk_analysis: KeywordTiers = field(default_factory=KeywordTiers)
    topics: TopicConfig = field(default_factory=TopicConfig)

    @property
    def enabled_sources(self) -> Tuple[Source, ...]:
        return tuple(s for s in self.sources if s.enabled)
