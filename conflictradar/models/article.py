from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import FrozenSet


def new_article_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Article:
    title: str
    link: str
    description: str = ""
    author: str = "Unknown"
    published_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=new_article_id)
    source: str = ""

    # Filled in by the risk scorer
    conflict_keywords: FrozenSet[str] = frozenset()
    risk_score: float = 0.0

    @property
    def text(self) -> str:
        """Lower-cased title and description, the input for keyword matching."""
        return f"{self.title} {self.description}".lower()

    def with_source(self, source: str) -> "Article":
        return replace(self, source=source)
