"""
Result cache for CityPulse analyses
Keyed by postal code; Redis when REDIS_URL is set, in-memory otherwise.
Freshness is checked at read time against the stored timestamp.
"""

import os
import json
import time
from typing import Any, Callable, Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_HOURS = 24
KEY_PREFIX = "pulse:"


def _connect_redis():
    """Connect to Redis if REDIS_URL is configured; None otherwise."""
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        return None
    try:
        import redis
        client = redis.from_url(redis_url, decode_responses=True,
                                socket_connect_timeout=1, socket_timeout=1)
        client.ping()
        logger.info("Redis connected for result caching")
        return client
    except Exception as e:
        logger.warning(f"Redis not available, using in-memory cache: {e}")
        return None


class PulseCache:
    """
    Postal-code keyed store of analysis envelopes.

    Entries are serialized JSON strings holding the envelope, the query
    coordinate and a write timestamp. An unreadable entry counts as a miss.
    """

    def __init__(self, ttl_hours: Optional[float] = None, redis_client=None,
                 clock: Optional[Callable[[], float]] = None):
        if ttl_hours is None:
            ttl_hours = float(os.getenv("PULSE_CACHE_TTL_HOURS", DEFAULT_TTL_HOURS))
        self.ttl_seconds = ttl_hours * 3600
        self._redis = redis_client
        self._clock = clock or time.time
        self._memory: Dict[str, str] = {}
        self.hits = 0
        self.misses = 0

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    def _read(self, key: str) -> Optional[str]:
        if self._redis is not None:
            try:
                return self._redis.get(key)
            except Exception as e:
                logger.warning(f"Redis read error, treating as miss: {e}")
                return None
        return self._memory.get(key)

    def _write(self, key: str, payload: str):
        if self._redis is not None:
            try:
                # Redis expiry is housekeeping only; freshness is decided on read
                self._redis.setex(key, int(self.ttl_seconds), payload)
                return
            except Exception as e:
                logger.warning(f"Redis write error: {e}")
                return
        self._memory[key] = payload

    def _delete(self, key: str):
        if self._redis is not None:
            try:
                self._redis.delete(key)
            except Exception as e:
                logger.warning(f"Redis delete error: {e}")
            return
        self._memory.pop(key, None)

    def get(self, postal_code: str) -> Optional[Dict[str, Any]]:
        """Return the stored envelope if it is fresh, else None."""
        key = f"{KEY_PREFIX}{postal_code}"
        payload = self._read(key)
        if payload is None:
            self.misses += 1
            return None

        try:
            entry = json.loads(payload)
            stored_at = float(entry["stored_at"])
            envelope = entry["envelope"]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Corrupt cache entry for {postal_code}, ignoring: {e}",
                           extra={"zip_code": postal_code, "error_type": type(e).__name__})
            self._delete(key)
            self.misses += 1
            return None

        age = self._clock() - stored_at
        if age > self.ttl_seconds:
            logger.debug(f"Cache entry for {postal_code} expired ({age / 3600:.1f}h old)")
            self.misses += 1
            return None

        self.hits += 1
        logger.info(f"Cache hit for {postal_code}", extra={"zip_code": postal_code})
        return envelope

    def put(self, postal_code: str, lat: float, lng: float, envelope: Dict[str, Any]):
        """Insert or overwrite the entry for postal_code with a fresh timestamp."""
        payload = json.dumps({
            "postal_code": postal_code,
            "lat": lat,
            "lng": lng,
            "envelope": envelope,
            "stored_at": self._clock(),
        })
        self._write(f"{KEY_PREFIX}{postal_code}", payload)
        logger.debug(f"Cached analysis for {postal_code}", extra={"zip_code": postal_code})

    def clear(self) -> int:
        """Remove every entry; returns the number removed."""
        if self._redis is not None:
            try:
                keys = self._redis.keys(f"{KEY_PREFIX}*")
                if keys:
                    self._redis.delete(*keys)
                removed = len(keys)
            except Exception as e:
                logger.warning(f"Error clearing Redis cache: {e}")
                removed = 0
        else:
            removed = len(self._memory)
            self._memory.clear()
        logger.info(f"Cleared {removed} cache entries")
        return removed

    def stats(self) -> Dict[str, Any]:
        if self._redis is not None:
            try:
                entries = len(self._redis.keys(f"{KEY_PREFIX}*"))
            except Exception as e:
                logger.warning(f"Redis stats error: {e}")
                entries = None
        else:
            entries = len(self._memory)
        return {
            "backend": self.backend,
            "entries": entries,
            "hits": self.hits,
            "misses": self.misses,
            "ttl_hours": self.ttl_seconds / 3600,
        }


_pulse_cache: Optional[PulseCache] = None


def get_pulse_cache() -> PulseCache:
    """Process-wide cache, created on first use."""
    global _pulse_cache
    if _pulse_cache is None:
        _pulse_cache = PulseCache(redis_client=_connect_redis())
    return _pulse_cache
