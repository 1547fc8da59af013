"""
Redis caching utilities for frequently read public data
"""
import json
import logging
from typing import Any, Optional

import redis

from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

PUBLIC_SPONSORS_KEY = "sponsors:public:active"
ACTIVE_PLACEMENTS_PREFIX = "sponsors:placements"


class Cache:
    """Redis cache wrapper with JSON serialization. A missing Redis means every read misses."""

    def get(self, key: str) -> Optional[Any]:
        client = get_redis_client()
        if not client:
            return None
        try:
            value = client.get(key)
        except redis.RedisError as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None
        if value:
            logger.debug(f"✅ Cache HIT: {key}")
            return json.loads(value)
        logger.debug(f"❌ Cache MISS: {key}")
        return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        client = get_redis_client()
        if not client:
            return False
        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        client = get_redis_client()
        if not client:
            return False
        try:
            client.delete(key)
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern (e.g., 'sponsors:placements:*')"""
        client = get_redis_client()
        if not client:
            return 0
        try:
            keys = list(client.scan_iter(match=pattern))
            if keys:
                deleted = client.delete(*keys)
                logger.debug(f"✅ Cache DELETE pattern: {pattern} ({deleted} keys)")
                return deleted
            return 0
        except redis.RedisError as e:
            logger.error(f"❌ Cache delete pattern error for {pattern}: {e}")
            return 0


# Global cache instance
cache = Cache()


def invalidate_sponsor_cache() -> None:
    """Called after any sponsor or placement write"""
    cache.delete(PUBLIC_SPONSORS_KEY)
    cache.delete_pattern(f"{ACTIVE_PLACEMENTS_PREFIX}:*")
