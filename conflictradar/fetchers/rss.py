from __future__ import annotations

import xml.sax
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Tuple

import feedparser

from ..errors import ErrorCategory, FeedError
from ..models import Article
from ..models.article import utc_now
from ..processors.normalize import clean_text
from ..utils.logging import get_logger

logger = get_logger("cr.fetchers.rss")

DEFAULT_TITLE = "Untitled"
DEFAULT_AUTHOR = "Unknown"


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Either the full list of normalised articles or a PARSE_ERROR, never both."""

    articles: Tuple[Article, ...] = ()
    error: Optional[FeedError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _parse_datetime(entry: Any) -> Optional[datetime]:
    # feedparser normalises dates to UTC struct_time in '*_parsed'
    for key in ("published_parsed", "updated_parsed"):
        tm = entry.get(key)
        if tm:
            try:
                return datetime(*tm[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                return None
    return None


class FeedParser:
    """Turn raw RSS/Atom bytes into unscored :class:`Article` records.

    Structural parsing is left to ``feedparser``; this class normalises the
    entries (defaults, HTML clean-up, fresh ids) and drops entries that lack a
    title or link after cleaning.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    def parse(self, raw: bytes, *, url: str = "") -> ParseResult:
        parsed = feedparser.parse(raw)

        exc = parsed.get("bozo_exception") if parsed.get("bozo") else None
        if isinstance(exc, xml.sax.SAXException):
            return self._failure(url, f"Malformed feed: {exc}")
        if not parsed.get("version") and not parsed.entries:
            detail = f": {exc}" if exc else ""
            return self._failure(url, f"Not a recognisable RSS/Atom feed{detail}")
        if exc is not None:
            logger.debug("Feed flagged by parser for %s: %s", url or "<bytes>", exc)

        if not parsed.entries:
            logger.warning("Feed has no entries: %s", url or "<bytes>")
            return ParseResult()

        articles = []
        for entry in parsed.entries:
            article = self._to_article(entry)
            if article is not None:
                articles.append(article)

        skipped = len(parsed.entries) - len(articles)
        logger.debug(
            "Parsed %d article(s) from %s (%d skipped)", len(articles), url or "<bytes>", skipped
        )
        return ParseResult(articles=tuple(articles))

    def _to_article(self, entry: Any) -> Optional[Article]:
        raw_title = entry.get("title")
        title = DEFAULT_TITLE if raw_title is None else clean_text(raw_title)
        link = (entry.get("link") or "").strip()
        if not title or not link:
            logger.debug("Skipping entry with missing title or link: title=%r link=%r", title, link)
            return None

        raw_author = entry.get("author")
        author = DEFAULT_AUTHOR if raw_author is None else clean_text(raw_author) or DEFAULT_AUTHOR

        return Article(
            title=title,
            link=link,
            description=clean_text(entry.get("summary") or entry.get("description")),
            author=author,
            published_at=_parse_datetime(entry) or self._clock(),
        )

    @staticmethod
    def _failure(url: str, message: str) -> ParseResult:
        logger.debug("Parse failure for %s: %s", url or "<bytes>", message)
        return ParseResult(error=FeedError(category=ErrorCategory.PARSE_ERROR, message=message, url=url))
