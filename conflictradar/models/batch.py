from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from ..errors import ErrorCategory


def new_batch_id() -> str:
    return f"BATCH-{uuid.uuid4().hex}"


@dataclass(frozen=True, slots=True)
class SourceReport:
    """Outcome of one source within a run. Failed sources report zeros."""

    name: str
    url: str
    total_articles: int = 0
    new_articles: int = 0
    high_risk_articles: int = 0
    error: Optional[ErrorCategory] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class BatchResult:
    source_label: str
    total_articles: int
    new_articles: int
    high_risk_articles: int
    duration_ms: int
    started_at: datetime
    finished_at: datetime
    sources: Tuple[SourceReport, ...] = ()
    batch_id: str = field(default_factory=new_batch_id)

    @property
    def failed_sources(self) -> Tuple[str, ...]:
        return tuple(r.name for r in self.sources if not r.ok)

    def summary(self) -> dict:
        return {
            "batchId": self.batch_id,
            "source": self.source_label,
            "totalArticles": self.total_articles,
            "newArticles": self.new_articles,
            "highRiskArticles": self.high_risk_articles,
            "durationMs": self.duration_ms,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "failedSources": list(self.failed_sources),
        }
