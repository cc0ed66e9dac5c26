"""
Redis-backed cache store.
"""

import logging
from typing import List, Optional, Sequence

import redis

from orderflow.cache_store import CacheError

logger = logging.getLogger(__name__)


class RedisCache:
    """
    Cache store on a Redis server, using SETEX for TTL and KEYS for
    pattern enumeration.
    """

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        """
        Initialize cache.

        Args:
            redis_url: Connection URL, e.g. redis://localhost:6379/0
            client: Pre-built client; created from redis_url when omitted
        """
        self.redis_url = redis_url
        self.client = client or redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except redis.RedisError as e:
            raise CacheError(f"redis get failed: {e}") from e

    def set_with_ttl(self, key: str, value: str, ttl: int):
        try:
            self.client.setex(key, ttl, value)
        except redis.RedisError as e:
            raise CacheError(f"redis setex failed: {e}") from e

    def keys_matching(self, pattern: str) -> List[str]:
        try:
            return list(self.client.keys(pattern))
        except redis.RedisError as e:
            raise CacheError(f"redis keys failed: {e}") from e

    def delete_many(self, keys: Sequence[str]):
        if not keys:
            return
        try:
            self.client.delete(*keys)
        except redis.RedisError as e:
            raise CacheError(f"redis delete failed: {e}") from e

    def close(self):
        self.client.close()
        logger.info("Redis cache closed")
