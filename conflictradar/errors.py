"""Closed taxonomy of feed fetch/parse failures.

Failures travel as values: a ``FeedError`` is attached to a failed fetch or
parse result and callers branch on its ``category`` instead of catching
exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    TIMEOUT = "TIMEOUT"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    DNS_ERROR = "DNS_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    IO_ERROR = "IO_ERROR"
    INVALID_URL = "INVALID_URL"
    NOT_FOUND = "NOT_FOUND"
    ACCESS_FORBIDDEN = "ACCESS_FORBIDDEN"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    SERVER_ERROR = "SERVER_ERROR"
    SERVER_UNAVAILABLE = "SERVER_UNAVAILABLE"
    HTTP_ERROR = "HTTP_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    PARSE_ERROR = "PARSE_ERROR"
    UNKNOWN = "UNKNOWN"

    @property
    def is_transient(self) -> bool:
        """Worth retrying within the same run."""
        return self in _TRANSIENT

    @property
    def is_permanent(self) -> bool:
        return self in _PERMANENT

    @property
    def log_level(self) -> int:
        if self.is_transient or self in (ErrorCategory.RATE_LIMITED, ErrorCategory.PARSE_ERROR):
            return logging.WARNING
        return logging.ERROR


_TRANSIENT = frozenset(
    {
        ErrorCategory.TIMEOUT,
        ErrorCategory.CONNECTION_REFUSED,
        ErrorCategory.NETWORK_ERROR,
        ErrorCategory.SERVER_UNAVAILABLE,
    }
)

_PERMANENT = frozenset(
    {
        ErrorCategory.NOT_FOUND,
        ErrorCategory.ACCESS_FORBIDDEN,
        ErrorCategory.AUTH_REQUIRED,
        ErrorCategory.INVALID_URL,
    }
)

_STATUS_CATEGORIES = {
    404: ErrorCategory.NOT_FOUND,
    403: ErrorCategory.ACCESS_FORBIDDEN,
    401: ErrorCategory.AUTH_REQUIRED,
    429: ErrorCategory.RATE_LIMITED,
    500: ErrorCategory.SERVER_ERROR,
    502: ErrorCategory.SERVER_UNAVAILABLE,
    503: ErrorCategory.SERVER_UNAVAILABLE,
    504: ErrorCategory.SERVER_UNAVAILABLE,
}


def category_for_status(status_code: int) -> Optional[ErrorCategory]:
    """Map an HTTP status to a category; ``None`` for non-error statuses."""
    if status_code in _STATUS_CATEGORIES:
        return _STATUS_CATEGORIES[status_code]
    if status_code >= 400:
        return ErrorCategory.HTTP_ERROR
    return None


@dataclass(frozen=True, slots=True)
class FeedError:
    category: ErrorCategory
    message: str
    url: str = ""
    status_code: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.category.value}: {self.message}"


def log_feed_error(logger: logging.Logger, source_name: str, error: FeedError) -> None:
    """Log a feed failure at the level its category calls for."""
    if error.category.is_transient:
        kind = "Temporary error"
    elif error.category.is_permanent:
        kind = "Permanent error"
    elif error.category is ErrorCategory.RATE_LIMITED:
        kind = "Rate limited"
    elif error.category is ErrorCategory.PARSE_ERROR:
        kind = "Parse error"
    else:
        kind = "Feed error"
    logger.log(error.category.log_level, "%s for %s (%s): %s", kind, source_name, error.url, error)
