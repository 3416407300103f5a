from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..utils.logging import get_logger

logger = get_logger("cr.storage.cache")

Clock = Callable[[], datetime]

# Minimum clock time between full sweeps triggered by writes
SWEEP_INTERVAL = timedelta(minutes=1)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueCache(ABC):
    """String key-value store whose records expire after a TTL."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the live value for ``key`` or ``None``."""

    @abstractmethod
    def set(self, key: str, value: str, ttl: timedelta) -> None:
        """Store ``value`` under ``key``, replacing any previous record."""

    @abstractmethod
    def set_if_absent(self, key: str, value: str, ttl: timedelta) -> bool:
        """Atomically store ``value`` unless a live record exists. True if stored."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; True if a live record was removed."""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """Live keys starting with ``prefix``."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop every expired record; return how many were removed."""

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class InMemoryCache(KeyValueCache):
    """Thread-safe in-process cache.

    Expired records are dropped when read, and writes sweep the whole store at
    most once per ``SWEEP_INTERVAL`` of clock time.
    """

    def __init__(self, *, clock: Clock = _utc_now) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._records: Dict[str, Tuple[str, datetime]] = {}
        self._next_sweep = clock()

    def _live(self, key: str) -> Optional[str]:
        record = self._records.get(key)
        if record is None:
            return None
        value, expires_at = record
        if expires_at <= self._clock():
            del self._records[key]
            self._changed()
            return None
        return value

    def _changed(self) -> None:
        """Hook for persistent subclasses; called with the lock held."""

    def _sweep(self, *, force: bool = False) -> int:
        now = self._clock()
        if not force and now < self._next_sweep:
            return 0
        self._next_sweep = now + SWEEP_INTERVAL
        expired = [k for k, (_, expires_at) in self._records.items() if expires_at <= now]
        for key in expired:
            del self._records[key]
        if expired:
            logger.debug("Swept %d expired record(s)", len(expired))
        return len(expired)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        with self._lock:
            self._sweep()
            self._records[key] = (value, self._clock() + ttl)
            self._changed()

    def set_if_absent(self, key: str, value: str, ttl: timedelta) -> bool:
        with self._lock:
            self._sweep()
            if self._live(key) is not None:
                return False
            self._records[key] = (value, self._clock() + ttl)
            self._changed()
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            if self._live(key) is None:
                return False
            del self._records[key]
            self._changed()
            return True

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            if self._sweep(force=True):
                self._changed()
            return [k for k in self._records if k.startswith(prefix)]

    def purge_expired(self) -> int:
        with self._lock:
            removed = self._sweep(force=True)
            if removed:
                self._changed()
            return removed

    def __len__(self) -> int:
        return len(self.keys())


class JsonFileCache(InMemoryCache):
    """In-memory cache mirrored to a JSON file so records survive restarts.

    The file holds ``{key: {"value": ..., "expires_at": iso8601}}``. A missing
    file starts empty; a corrupt one is logged and replaced on the next write.
    """

    def __init__(self, store_path: Path | str = ".cache/dedup.json", *, clock: Clock = _utc_now) -> None:
        super().__init__(clock=clock)
        self.store_path = Path(store_path)
        self._load()

    def _load(self) -> None:
        if not self.store_path.exists():
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            return
        try:
            data = json.loads(self.store_path.read_text(encoding="utf-8"))
            now = self._clock()
            for key, row in data.items():
                expires_at = datetime.fromisoformat(row["expires_at"])
                if expires_at > now:
                    self._records[key] = (str(row["value"]), expires_at)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", self.store_path, exc)
            self._records = {}
        logger.debug("Loaded %d cache record(s) from %s", len(self._records), self.store_path)

    def _changed(self) -> None:
        now = self._clock()
        payload = {
            key: {"value": value, "expires_at": expires_at.isoformat()}
            for key, (value, expires_at) in self._records.items()
            if expires_at > now
        }
        tmp_path = self.store_path.with_suffix(self.store_path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp_path.replace(self.store_path)
