import logging
import math
import threading
import time
from collections.abc import Callable, Sequence

from gallery_api.models import CacheEntry, MediaRecord

logger = logging.getLogger(__name__)


class ListingCache:
    """In-memory TTL cache for listing payloads.

    Entries stop being fresh at ``expires_at`` but stay readable for stale
    fallback until ``stale_until``. Eviction runs lazily from ``evict()``;
    there is no background sweeper.
    """

    def __init__(
        self,
        max_entries: int = 500,
        stale_ttl_seconds: float = 3600.0,
        now: Callable[[], float] | None = None,
    ):
        self.max_entries = max(1, max_entries)
        self.stale_ttl_seconds = max(0.0, stale_ttl_seconds)
        self.now = now or time.monotonic
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._next_lapse = math.inf

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def put(
        self,
        key: str,
        files: Sequence[MediaRecord],
        fingerprint: str,
        ttl_seconds: float,
        *,
        is_truncated: bool = False,
        next_cursor: str | None = None,
    ) -> CacheEntry:
        created_at = self.now()
        expires_at = created_at + ttl_seconds
        entry = CacheEntry(
            key=key,
            files=tuple(files),
            fingerprint=fingerprint,
            created_at=created_at,
            expires_at=expires_at,
            stale_until=expires_at + self.stale_ttl_seconds,
            is_truncated=is_truncated,
            next_cursor=next_cursor,
        )
        with self._lock:
            self._entries[key] = entry
            self._next_lapse = min(self._next_lapse, entry.stale_until)
        return entry

    def evict(self) -> int:
        """Drop lapsed entries, then trim to ``max_entries`` soonest-expiring first."""
        now = self.now()
        with self._lock:
            if not self._entries:
                return 0
            if len(self._entries) <= self.max_entries and now < self._next_lapse:
                return 0

            removed = 0
            for key in [k for k, e in self._entries.items() if e.stale_until <= now]:
                del self._entries[key]
                removed += 1

            overflow = len(self._entries) - self.max_entries
            if overflow > 0:
                by_expiry = sorted(self._entries.values(), key=lambda e: e.expires_at)
                for entry in by_expiry[:overflow]:
                    del self._entries[entry.key]
                removed += overflow

            self._next_lapse = min(
                (e.stale_until for e in self._entries.values()), default=math.inf
            )

        if removed:
            logger.debug("evicted %d listing cache entries", removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._next_lapse = math.inf
