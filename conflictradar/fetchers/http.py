from __future__ import annotations

import gzip
import socket
import threading
import time
import zlib
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterator, Optional, Sequence
from urllib.parse import urlparse

import requests

from ..errors import ErrorCategory, FeedError, category_for_status
from ..utils.logging import get_logger
from ..utils.settings import HttpConfig
from .retry import BackoffPolicy, with_retries

logger = get_logger("cr.fetchers.http")

MAX_BACKOFF_SECONDS = 10.0
BACKOFF_MULTIPLIER = 2.0

_GZIP_MAGIC = b"\x1f\x8b"
_FEED_CONTENT_TYPE_HINTS = ("xml", "rss", "atom", "text")
_DNS_FAILURE_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "failed to resolve",
    "no address associated with hostname",
)

_BASE_HEADERS: Dict[str, str] = {
    "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Connection": "close",
}


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Raw feed bytes on success, a categorised :class:`FeedError` otherwise."""

    url: str
    content: Optional[bytes] = None
    error: Optional[FeedError] = None
    status_code: Optional[int] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None


def _causes(exc: BaseException) -> Iterator[BaseException]:
    """Walk an exception and everything it wraps (urllib3 ``reason``, causes, args)."""
    seen = set()
    stack = [exc]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        linked = [getattr(current, "reason", None), current.__cause__, current.__context__]
        linked.extend(current.args)
        stack.extend(item for item in linked if isinstance(item, BaseException))


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """Map a transport exception onto the error taxonomy."""
    if isinstance(exc, (requests.Timeout, socket.timeout, TimeoutError)):
        return ErrorCategory.TIMEOUT
    if isinstance(
        exc,
        (
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
            requests.exceptions.InvalidURL,
            requests.exceptions.URLRequired,
        ),
    ):
        return ErrorCategory.INVALID_URL
    if isinstance(exc, socket.gaierror):
        return ErrorCategory.DNS_ERROR
    if isinstance(exc, (requests.ConnectionError, ConnectionError)):
        chain = list(_causes(exc))
        if any(isinstance(c, ConnectionRefusedError) for c in chain):
            return ErrorCategory.CONNECTION_REFUSED
        if any(isinstance(c, socket.gaierror) for c in chain):
            return ErrorCategory.DNS_ERROR
        message = " ".join(str(c) for c in chain).lower()
        if "connection refused" in message:
            return ErrorCategory.CONNECTION_REFUSED
        if any(hint in message for hint in _DNS_FAILURE_HINTS):
            return ErrorCategory.DNS_ERROR
        return ErrorCategory.NETWORK_ERROR
    if isinstance(exc, (requests.RequestException, OSError, EOFError, zlib.error)):
        return ErrorCategory.IO_ERROR
    return ErrorCategory.UNKNOWN


def _is_feed_content_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return True
    lowered = content_type.lower()
    return any(hint in lowered for hint in _FEED_CONTENT_TYPE_HINTS)


def _decompress(body: bytes) -> bytes:
    # requests already undoes Content-Encoding; this covers gzip served as a plain payload
    if body.startswith(_GZIP_MAGIC):
        return gzip.decompress(body)
    return body


class FeedFetcher:
    """Fetch raw feed bytes over HTTP with timeouts, retries and error categories.

    ``fetch`` never raises: every failure comes back as a :class:`FetchResult`
    carrying a :class:`FeedError`. Transient categories are retried with
    exponential backoff; everything else returns after the first attempt.
    """

    def __init__(
        self,
        config: HttpConfig | None = None,
        *,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or HttpConfig()
        if not self.config.user_agents:
            raise ValueError("At least one user agent is required")
        self._session = session or requests.Session()
        self._sleep = sleep
        self._ua_lock = threading.Lock()
        self._ua_index = 0
        self.policy = BackoffPolicy(
            initial_delay=self.config.retry_delay.total_seconds(),
            multiplier=BACKOFF_MULTIPLIER,
            max_delay=MAX_BACKOFF_SECONDS,
            max_attempts=self.config.max_retries,
        )

    @property
    def user_agents(self) -> Sequence[str]:
        return self.config.user_agents

    def next_user_agent(self) -> str:
        """Round-robin over the configured agents, shared by all sources."""
        with self._ua_lock:
            agent = self.config.user_agents[self._ua_index]
            self._ua_index = (self._ua_index + 1) % len(self.config.user_agents)
        return agent

    def _headers(self) -> Dict[str, str]:
        return {**_BASE_HEADERS, "User-Agent": self.next_user_agent()}

    @property
    def _timeout(self) -> tuple[float, float]:
        return (self.config.connect_timeout.total_seconds(), self.config.read_timeout.total_seconds())

    def fetch(self, url: str) -> FetchResult:
        """Fetch ``url``, retrying transient failures per the backoff policy."""
        attempts = 0

        def attempt() -> FetchResult:
            nonlocal attempts
            attempts += 1
            return self._fetch_once(url)

        result = with_retries(
            attempt,
            should_retry=lambda r: r.error is not None and r.error.category.is_transient,
            policy=self.policy,
            sleep=self._sleep,
            describe=lambda r: f"{url} -> {r.error}",
        )
        return replace(result, attempts=attempts)

    def _fetch_once(self, url: str) -> FetchResult:
        target = (url or "").strip()
        parsed = urlparse(target)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return self._failure(url, ErrorCategory.INVALID_URL, f"Invalid feed URL: {url!r}")

        logger.debug("Fetching feed %s", target)
        try:
            resp = self._session.get(
                target,
                headers=self._headers(),
                timeout=self._timeout,
                allow_redirects=True,
            )
        except Exception as exc:  # noqa: BLE001 - categorised below
            return self._exception_failure(url, exc)

        try:
            status = resp.status_code
            category = category_for_status(status)
            if category is not None:
                message = f"HTTP {status} ({resp.reason or 'no reason'})"
                return self._failure(url, category, message, status_code=status)

            content_type = resp.headers.get("Content-Type")
            if status == 200 and not _is_feed_content_type(content_type):
                logger.warning("Unexpected content type for %s: %s", url, content_type)

            body = _decompress(resp.content or b"")
        except Exception as exc:  # noqa: BLE001 - categorised below
            return self._exception_failure(url, exc)
        finally:
            resp.close()

        logger.debug("Fetched %d bytes from %s (HTTP %s)", len(body), url, status)
        return FetchResult(url=url, content=body, status_code=status)

    def _exception_failure(self, url: str, exc: BaseException) -> FetchResult:
        category = categorize_exception(exc)
        if category is ErrorCategory.UNKNOWN:
            logger.exception("Unexpected error fetching %s", url)
        return self._failure(url, category, f"{type(exc).__name__}: {exc}")

    @staticmethod
    def _failure(
        url: str,
        category: ErrorCategory,
        message: str,
        *,
        status_code: Optional[int] = None,
    ) -> FetchResult:
        error = FeedError(category=category, message=message, url=url, status_code=status_code)
        return FetchResult(url=url, error=error, status_code=status_code)

    def close(self) -> None:
        self._session.close()
