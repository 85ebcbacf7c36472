"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    All methods are async because cache operations involve I/O (network for Redis).
    Values are strings; callers serialize structured data themselves.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache.

        Returns:
            Cached value or None if not found (or expired)
        """

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        """
        Set value in cache with TTL (Time To Live) in seconds.

        Returns:
            True if successful, False otherwise
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Returns:
            True if deleted, False if key didn't exist
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists in cache."""

    @abstractmethod
    async def incr(self, key: str, ttl: int = 3600) -> int:
        """
        Increment an integer counter, starting it at 1 with the given TTL.

        The TTL is set when the counter is created and not extended
        afterwards, so a counter lives for one fixed window.

        Returns:
            The counter value after incrementing, or 0 if nothing is counted
        """

    @abstractmethod
    async def clear(self) -> bool:
        """Clear all cache entries."""


class RedisCache(CacheStrategy):
    """
    Redis cache implementation.

    Shared between API processes, TTL enforced by Redis itself. Errors are
    logged and reported as a miss so a Redis outage never fails a request.
    """

    def __init__(self, redis_client):
        self.redis = redis_client

    async def get(self, key: str) -> Optional[str]:
        try:
            value = self.redis.get(key)
            return value.decode('utf-8') if value else None
        except Exception as e:
            logger.error("Redis get error: %s", e)
            return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        try:
            return bool(self.redis.setex(key, ttl, value))
        except Exception as e:
            logger.error("Redis set error: %s", e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(self.redis.delete(key))
        except Exception as e:
            logger.error("Redis delete error: %s", e)
            return False

    async def exists(self, key: str) -> bool:
        try:
            return bool(self.redis.exists(key))
        except Exception as e:
            logger.error("Redis exists error: %s", e)
            return False

    async def incr(self, key: str, ttl: int = 3600) -> int:
        try:
            count = self.redis.incr(key)
            if count == 1:
                self.redis.expire(key, ttl)
            return int(count)
        except Exception as e:
            logger.error("Redis incr error: %s", e)
            return 0

    async def clear(self) -> bool:
        """Clear all Redis keys (use with caution!)"""
        try:
            self.redis.flushdb()
            return True
        except Exception as e:
            logger.error("Redis clear error: %s", e)
            return False


class InMemoryCache(CacheStrategy):
    """
    In-memory cache backed by a dict of (value, expires_at).

    Expired entries are dropped lazily on read. Not shared between
    processes; used in development, tests and as the Redis fallback.
    """

    def __init__(self):
        self._cache: Dict[str, Tuple[str, float]] = {}

    def _live_entry(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            del self._cache[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        return self._live_entry(key)

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        self._cache[key] = (value, time.monotonic() + ttl)
        return True

    async def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def incr(self, key: str, ttl: int = 3600) -> int:
        current = self._live_entry(key)
        if current is None:
            self._cache[key] = ("1", time.monotonic() + ttl)
            return 1

        _, expires_at = self._cache[key]
        count = int(current) + 1
        self._cache[key] = (str(count), expires_at)
        return count

    async def clear(self) -> bool:
        self._cache.clear()
        return True


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    Every read is a miss, so callers always recompute.
    """

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        return True

    async def delete(self, key: str) -> bool:
        return True

    async def exists(self, key: str) -> bool:
        return False

    async def incr(self, key: str, ttl: int = 3600) -> int:
        return 0

    async def clear(self) -> bool:
        return True
