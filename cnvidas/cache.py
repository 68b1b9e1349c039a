"""
Redis caching utilities for frequently read listings
"""
import json
import logging
from typing import Any, Optional

from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

AVAILABLE_DOCTORS_KEY = "doctors:available"
AVAILABLE_DOCTORS_TTL = 60


class Cache:
    """Redis cache wrapper with JSON serialization. Every call degrades to a miss without Redis."""

    def __init__(self):
        self.redis_client = None

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.debug(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False


# Global cache instance
cache = Cache()


def get_available_doctors_cached() -> Optional[list]:
    return cache.get(AVAILABLE_DOCTORS_KEY)


def set_available_doctors_cached(doctors: list) -> bool:
    return cache.set(AVAILABLE_DOCTORS_KEY, doctors, AVAILABLE_DOCTORS_TTL)


def invalidate_available_doctors_cache() -> bool:
    """Invalidate when a doctor toggles emergency availability or is (dis)approved"""
    return cache.delete(AVAILABLE_DOCTORS_KEY)
