"""Keyword-driven conflict risk scoring.

Matching is plain substring containment on lower-cased text, so "war" also
matches "warrant". Scores are deterministic for a given text, weight and
keyword tiers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable

from ..models import Article

KEYWORD_SCORE = 0.15
KEYWORD_SCORE_CAP = 0.8
HIGH_RISK_BONUS = 0.25
CRITICAL_BONUS = 0.4

DEFAULT_CONFLICT_KEYWORDS = (
    "war", "conflict", "attack", "violence", "protest", "crisis",
    "terrorism", "bomb", "shooting", "riot", "strike", "sanctions",
    "military", "battle", "invasion", "occupation", "rebellion",
)
DEFAULT_HIGH_RISK_KEYWORDS = ("war", "terrorism", "bomb", "attack", "invasion", "battle")
DEFAULT_CRITICAL_KEYWORDS = ("nuclear", "chemical", "genocide", "massacre")


def _keyword_set(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(v.strip().lower() for v in values if v and v.strip())


@dataclass(frozen=True, slots=True)
class KeywordTiers:
    """Base, high-risk and critical keyword sets.

    All three take part in matching; the high-risk and critical tiers only
    add a severity bonus on top of the per-keyword score.
    """

    conflict: FrozenSet[str] = field(default_factory=lambda: _keyword_set(DEFAULT_CONFLICT_KEYWORDS))
    high_risk: FrozenSet[str] = field(default_factory=lambda: _keyword_set(DEFAULT_HIGH_RISK_KEYWORDS))
    critical: FrozenSet[str] = field(default_factory=lambda: _keyword_set(DEFAULT_CRITICAL_KEYWORDS))

    @classmethod
    def of(
        cls,
        conflict: Iterable[str] = (),
        high_risk: Iterable[str] = (),
        critical: Iterable[str] = (),
    ) -> "KeywordTiers":
        return cls(_keyword_set(conflict), _keyword_set(high_risk), _keyword_set(critical))

    @property
    def all_keywords(self) -> FrozenSet[str]:
        return self.conflict | self.high_risk | self.critical

    def find_keywords(self, text: str | None) -> FrozenSet[str]:
        if not text:
            return frozenset()
        lowered = text.lower()
        return frozenset(k for k in self.all_keywords if k in lowered)


@dataclass(frozen=True, slots=True)
class RiskAssessment:
    keywords: FrozenSet[str]
    score: float


def _round_half_up(value: float, digits: int = 2) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def score(text: str | None, source_weight: float, tiers: KeywordTiers) -> RiskAssessment:
    """Score ``text`` against ``tiers``, scaled by the source weight.

    ``base = min(0.15 * found, 0.8)``, plus 0.4 if a critical keyword was
    found, else plus 0.25 if a high-risk one was, capped at 1.0. The weighted
    result is kept within [0, 1] and rounded to two decimals; a NaN weight
    scores 0 and an infinite one saturates at 1.
    """
    found = tiers.find_keywords(text)
    if not found:
        return RiskAssessment(keywords=frozenset(), score=0.0)

    base = min(KEYWORD_SCORE * len(found), KEYWORD_SCORE_CAP)
    if found & tiers.critical:
        base = min(base + CRITICAL_BONUS, 1.0)
    elif found & tiers.high_risk:
        base = min(base + HIGH_RISK_BONUS, 1.0)

    weighted = base * source_weight
    if math.isnan(weighted):
        weighted = 0.0
    return RiskAssessment(keywords=found, score=_round_half_up(min(max(weighted, 0.0), 1.0)))


class RiskScorer:
    """Applies :func:`score` to articles using one set of keyword tiers."""

    def __init__(self, tiers: KeywordTiers | None = None) -> None:
        self.tiers = tiers or KeywordTiers()

    def assess(self, text: str | None, source_weight: float = 1.0) -> RiskAssessment:
        return score(text, source_weight, self.tiers)

    def analyze(self, article: Article, source_weight: float = 1.0) -> Article:
        """Return a scored copy of ``article``; the input is left untouched."""
        result = self.assess(article.text, source_weight)
        return replace(article, conflict_keywords=result.keywords, risk_score=result.score)
