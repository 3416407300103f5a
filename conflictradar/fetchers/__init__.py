"""Feed acquisition: HTTP fetching with retries and RSS/Atom parsing."""

from .http import FeedFetcher, FetchResult, categorize_exception
from .retry import BackoffPolicy, with_retries
from .rss import FeedParser, ParseResult

__all__ = [
    "FeedFetcher",
    "FetchResult",
    "categorize_exception",
    "BackoffPolicy",
    "with_retries",
    "FeedParser",
    "ParseResult",
]
