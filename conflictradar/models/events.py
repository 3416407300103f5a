"""Event payloads published on the message bus.

Wire field names follow the camelCase schema consumed downstream.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Tuple

from .article import Article, utc_now
from .batch import BatchResult


def new_alert_id() -> str:
    return f"ALERT-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True, slots=True)
class NewsIngestedEvent:
    article_id: str
    title: str
    link: str
    source: str
    published_at: datetime
    risk_score: float
    conflict_keywords: Tuple[str, ...]
    processed_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_article(cls, article: Article) -> "NewsIngestedEvent":
        return cls(
            article_id=article.id,
            title=article.title,
            link=article.link,
            source=article.source,
            published_at=article.published_at,
            risk_score=article.risk_score,
            conflict_keywords=tuple(sorted(article.conflict_keywords)),
        )

    @property
    def key(self) -> str:
        return self.article_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "articleId": self.article_id,
            "title": self.title,
            "link": self.link,
            "source": self.source,
            "publishedAt": self.published_at.isoformat(),
            "riskScore": self.risk_score,
            "conflictKeywords": list(self.conflict_keywords),
            "processedAt": self.processed_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class HighRiskDetectedEvent:
    article_id: str
    title: str
    risk_score: float
    trigger_keywords: Tuple[str, ...]
    source: str
    alert_id: str = field(default_factory=new_alert_id)
    detected_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_article(cls, article: Article) -> "HighRiskDetectedEvent":
        return cls(
            article_id=article.id,
            title=article.title,
            risk_score=article.risk_score,
            trigger_keywords=tuple(sorted(article.conflict_keywords)),
            source=article.source,
        )

    @property
    def key(self) -> str:
        return self.alert_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alertId": self.alert_id,
            "articleId": self.article_id,
            "title": self.title,
            "riskScore": self.risk_score,
            "triggerKeywords": list(self.trigger_keywords),
            "source": self.source,
            "detectedAt": self.detected_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class BatchProcessedEvent:
    batch_id: str
    source: str
    total_articles: int
    new_articles: int
    high_risk_articles: int
    processing_duration_ms: int
    processed_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_batch(cls, batch: BatchResult) -> "BatchProcessedEvent":
        return cls(
            batch_id=batch.batch_id,
            source=batch.source_label,
            total_articles=batch.total_articles,
            new_articles=batch.new_articles,
            high_risk_articles=batch.high_risk_articles,
            processing_duration_ms=batch.duration_ms,
        )

    @property
    def key(self) -> str:
        return self.batch_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "source": self.source,
            "totalArticles": self.total_articles,
            "newArticles": self.new_articles,
            "highRiskArticles": self.high_risk_articles,
            "processingDurationMs": self.processing_duration_ms,
            "processedAt": self.processed_at.isoformat(),
        }
