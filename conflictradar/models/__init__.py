"""Typed models used across the application."""

from .source import Source
from .article import Article
from .batch import BatchResult, SourceReport
from .events import BatchProcessedEvent, HighRiskDetectedEvent, NewsIngestedEvent

__all__ = [
    "Source",
    "Article",
    "BatchResult",
    "SourceReport",
    "NewsIngestedEvent",
    "HighRiskDetectedEvent",
    "BatchProcessedEvent",
]
