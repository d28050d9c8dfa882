"""Time-expiring memory of recently attempted files."""

import threading
import time
from datetime import timedelta
from typing import Callable, Dict, Hashable, Union

from kusto_ingestor.observability.logger_adaptor import get_logger

logger = get_logger(__name__)


class DedupeCache:
    """Set of keys that expire after a per-entry time-to-live.

    Keys are inserted when a file is selected for ingestion, before the
    attempt is made. A live entry therefore suppresses both duplicates and
    retries: a failed attempt is retried no sooner than the entry's TTL.

    Thread-safe, so ingestion sets may share one instance across tasks or
    threads.

    Example:
        >>> cache = DedupeCache()
        >>> cache.insert(("sales", "a.json"), timedelta(minutes=3))
        >>> cache.contains(("sales", "a.json"))
        True
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        purge_interval_seconds: float = 60.0,
    ):
        self._clock = clock
        self._entries: Dict[Hashable, float] = {}
        self._lock = threading.Lock()
        self._purge_interval = purge_interval_seconds
        self._next_purge = clock() + purge_interval_seconds

    def contains(self, key: Hashable) -> bool:
        with self._lock:
            expires_at = self._entries.get(key)
            if expires_at is None:
                return False
            if expires_at <= self._clock():
                del self._entries[key]
                return False
            return True

    def insert(self, key: Hashable, ttl: Union[timedelta, float]) -> None:
        """Mark ``key`` as attempted for ``ttl`` (a timedelta or seconds)."""
        seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        with self._lock:
            now = self._clock()
            self._entries[key] = now + seconds
            if now >= self._next_purge:
                self._purge_locked()

    def purge(self) -> int:
        """Drop expired entries and return how many were removed."""
        with self._lock:
            return self._purge_locked()

    def _purge_locked(self) -> int:
        now = self._clock()
        self._next_purge = now + self._purge_interval
        expired = [
            key for key, expires_at in self._entries.items() if expires_at <= now
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired dedupe cache entries")
        return len(expired)

    def __contains__(self, key: Hashable) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for expires_at in self._entries.values() if expires_at > now)
