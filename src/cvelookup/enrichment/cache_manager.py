"""In-memory TTL cache for CVE records."""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    key: str
    value: Any
    inserted_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.inserted_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheManager:
    """
    Thread-safe in-memory cache with per-entry TTL.

    Features:
    - 1-hour default TTL
    - Background sweep of expired entries (every 10 minutes by default)
    - Hit/miss counters for observability

    Only affirmative results should be stored here; the lookup service
    never caches "not found" so a CVE published after a miss is picked up
    on the next lookup.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        check_period_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize cache manager.

        Args:
            ttl_seconds: Default time to live (default: 1 hour)
            check_period_seconds: Sweep interval; 0 disables the sweeper thread
            clock: Monotonic time source (tests inject a fake)
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        self.ttl_seconds = ttl_seconds
        self.check_period_seconds = check_period_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if check_period_seconds > 0:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                name="cvelookup-cache-sweeper",
                daemon=True
            )
            self._sweeper.start()

        logger.debug(
            f"Cache initialized (TTL: {ttl_seconds:.0f}s, "
            f"sweep every {check_period_seconds:.0f}s)"
        )

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if expired/not found
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                logger.debug(f"Cache expired: {key}")
                return None

            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store value, replacing any existing entry for key.

        Args:
            key: Cache key
            value: Value to cache (None is rejected, it means "miss")
            ttl: Seconds to live (default: cache TTL)
        """
        if value is None:
            raise ValueError("Refusing to cache None")

        ttl = self.ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be > 0")

        with self._lock:
            self._entries[key] = CacheEntry(key, value, self._clock(), ttl)

        logger.debug(f"Cache set: {key} (TTL: {ttl:.0f}s)")

    def delete(self, key: str) -> bool:
        """Delete value from cache. Returns True if an entry was removed."""
        with self._lock:
            removed = self._entries.pop(key, None) is not None

        if removed:
            logger.debug(f"Cache deleted: {key}")
        return removed

    def clear(self) -> int:
        """
        Clear all entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()

        logger.info(f"Cache cleared: {count} entries removed")
        return count

    def cleanup_expired(self) -> int:
        """
        Remove expired cache entries.

        Returns:
            Number of expired entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.info(f"Cleanup: {len(expired)} expired entries removed")

        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "keys": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
                "ttl_seconds": self.ttl_seconds,
            }

    def close(self) -> None:
        """Stop the background sweeper."""
        self._stop_event.set()
        if self._sweeper is not None and self._sweeper is not threading.current_thread():
            self._sweeper.join(timeout=1.0)
        self._sweeper = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self.check_period_seconds):
            self.cleanup_expired()
