from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..storage import KeyValueCache
from ..utils.logging import get_logger

logger = get_logger("cr.processors.dedup")

ARTICLE_KEY_PREFIX = "rss:article:"
DEFAULT_TTL = timedelta(days=7)


class Deduplicator:
    """Remember which article links have been ingested.

    Each link is stored as ``rss:article:<md5 of link>`` with the processing
    time as value and a fixed TTL. Once a record lapses the link counts as new
    again.

    ``is_processed`` followed by ``mark_processed`` is not atomic: two callers
    can both see a link as new before either marks it. Concurrent callers
    should use :meth:`claim`, which checks and marks in one cache operation.
    """

    def __init__(
        self,
        cache: KeyValueCache,
        *,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.cache = cache
        self.ttl = ttl
        self._clock = clock

    @staticmethod
    def key_for(link: str) -> str:
        digest = hashlib.md5(link.encode("utf-8"), usedforsecurity=False).hexdigest()
        return ARTICLE_KEY_PREFIX + digest

    def _timestamp(self) -> str:
        return self._clock().isoformat()

    def is_processed(self, link: str) -> bool:
        return self.cache.exists(self.key_for(link))

    def mark_processed(self, link: str) -> None:
        self.cache.set(self.key_for(link), self._timestamp(), self.ttl)

    def claim(self, link: str) -> bool:
        """Mark ``link`` as processed unless it already is. True if it was new."""
        claimed = self.cache.set_if_absent(self.key_for(link), self._timestamp(), self.ttl)
        if not claimed:
            logger.debug("Already processed: %s", link)
        return claimed

    def processed_at(self, link: str) -> Optional[str]:
        return self.cache.get(self.key_for(link))

    def forget(self, link: str) -> bool:
        return self.cache.delete(self.key_for(link))

    def cached_count(self) -> int:
        return len(self.cache.keys(ARTICLE_KEY_PREFIX))

    def purge_expired(self) -> int:
        """Drop lapsed records from the store; return how many went."""
        return self.cache.purge_expired()
