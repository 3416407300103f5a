"""Processing steps: text normalisation, deduplication, risk scoring."""

from .normalize import clean_text
from .dedup import Deduplicator
from .risk import KeywordTiers, RiskAssessment, RiskScorer, score

__all__ = [
    "clean_text",
    "Deduplicator",
    "KeywordTiers",
    "RiskAssessment",
    "RiskScorer",
    "score",
]
