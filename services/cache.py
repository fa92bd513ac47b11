"""
Cache Service Module
Bounded in-memory TTL cache for geolocation lookups

Entries expire per item (default 24 hours) and the store never holds more
than ``max_keys`` entries. When full, expired entries are dropped first and
then the least recently used live entry is evicted to make room.
"""

import threading
import time

from cachetools import TLRUCache

from config import Config
from utils.logger import get_logger

logger = get_logger('services.cache')


def _time_to_use(key, item, now):
    ttl, _value = item
    return now + ttl


class CacheService:
    """Thread-safe TTL cache with hit/miss accounting"""

    def __init__(self, ttl=None, max_keys=None, check_period=None, timer=time.monotonic):
        """
        Args:
            ttl: Default time-to-live in seconds
            max_keys: Maximum number of entries held at once
            check_period: Seconds between background expiry sweeps
            timer: Monotonic clock used for expiry (injectable for tests)
        """
        self.default_ttl = ttl if ttl is not None else Config.CACHE_TTL
        self.max_keys = max_keys if max_keys is not None else Config.CACHE_MAX_KEYS
        self.check_period = check_period if check_period is not None else Config.CACHE_CHECK_PERIOD

        # Values are stored as (ttl, value) so each entry carries its own expiry
        self._cache = TLRUCache(maxsize=self.max_keys, ttu=_time_to_use, timer=timer)
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

        self._stop_event = threading.Event()
        self._sweeper = None

    def get(self, key):
        """
        Get a value from cache

        Args:
            key: Cache key

        Returns:
            Cached value or None if missing or expired
        """
        with self._lock:
            item = self._cache.get(key)
            if item is None:
                self._misses += 1
            else:
                self._hits += 1

        return None if item is None else item[1]

    def set(self, key, value, ttl=None):
        """
        Insert or overwrite a value, restarting its expiry

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (defaults to the cache TTL)

        Returns:
            True if stored, False if the TTL was not positive
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            logger.warning("cache_rejected", extra={"data": {"key": key, "ttl": ttl}})
            return False

        with self._lock:
            self._cache[key] = (ttl, value)

        logger.debug("cache_set", extra={"data": {"key": key, "ttl": ttl}})
        return True

    def delete(self, key):
        """
        Delete a specific key

        Returns:
            Number of deleted entries (0 or 1)
        """
        with self._lock:
            if key not in self._cache:
                return 0
            del self._cache[key]
        return 1

    def flush(self):
        """Remove every entry. Hit and miss counters are kept."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info("cache_flushed", extra={"data": {"removed": count}})

    def expire(self):
        """
        Drop expired entries now

        Returns:
            Number of entries removed
        """
        with self._lock:
            expired = self._cache.expire()
        return len(expired)

    def stats(self):
        """
        Get cache statistics

        Returns:
            Dictionary with keyCount, hits, misses, hitRatePercent
        """
        with self._lock:
            self._cache.expire()
            key_count = len(self._cache)
            hits = self._hits
            misses = self._misses

        total = hits + misses
        hit_rate = round(hits / total * 100, 2) if total else 0

        return {
            "keyCount": key_count,
            "hits": hits,
            "misses": misses,
            "hitRatePercent": hit_rate,
        }

    def __len__(self):
        with self._lock:
            return len(self._cache)

    # ========================================================================
    # Background sweep
    # ========================================================================

    def start_sweeper(self):
        """Start the periodic expiry sweep. Reads never rely on it."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="geotime-cache-sweeper",
            daemon=True
        )
        self._sweeper.start()

    def stop_sweeper(self):
        """Stop the periodic expiry sweep"""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1)
            self._sweeper = None

    def _sweep_loop(self):
        while not self._stop_event.wait(self.check_period):
            removed = self.expire()
            if removed:
                logger.debug("cache_swept", extra={"data": {"removed": removed}})
