import logging
import redis.asyncio as redis
from redis.exceptions import RedisError
from typing import Optional, Tuple
from app.core.config import settings

logger = logging.getLogger(__name__)

# Redis client instance
redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True
        )
    return redis_client


async def close_redis():
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.close()
        redis_client = None


class RedisCache:
    """Redis cache helper with common operations."""

    def __init__(self):
        self.client: Optional[redis.Redis] = None

    async def _get_client(self):
        if not self.client:
            self.client = await get_redis()
        return self.client

    async def delete(self, key: str):
        """Delete key from cache."""
        client = await self._get_client()
        await client.delete(key)

    async def expire(self, key: str, seconds: int):
        """Set expiration on key."""
        client = await self._get_client()
        await client.expire(key, seconds)

    async def ttl(self, key: str) -> int:
        """Seconds until the key expires."""
        client = await self._get_client()
        return await client.ttl(key)

    async def increment(self, key: str, amount: int = 1) -> int:
        """Increment value."""
        client = await self._get_client()
        return await client.incrby(key, amount)


class RateLimiter:
    """Fixed-window attempt counter kept in Redis.

    When Redis cannot be reached the limiter lets the request through and
    logs a warning, so authentication keeps working without it.
    """

    def __init__(self, prefix: str, cache: Optional[RedisCache] = None):
        self.prefix = prefix
        self.cache = cache or RedisCache()

    def _get_key(self, identifier: str) -> str:
        return f"{self.prefix}{identifier.lower()}"

    async def hit(self, identifier: str, max_attempts: int, window_seconds: int) -> Tuple[bool, int]:
        """Record one attempt. Returns ``(limited, retry_after_seconds)``."""
        key = self._get_key(identifier)
        try:
            count = await self.cache.increment(key)
            if count == 1:
                await self.cache.expire(key, window_seconds)
            if count > max_attempts:
                retry_after = await self.cache.ttl(key)
                return True, max(retry_after, 0)
        except (RedisError, OSError) as e:
            logger.warning(f"⚠️ Rate limiter unavailable, allowing request: {e}")
        return False, 0

    async def reset(self, identifier: str):
        try:
            await self.cache.delete(self._get_key(identifier))
        except (RedisError, OSError) as e:
            logger.warning(f"⚠️ Could not reset rate limit for {identifier}: {e}")


# Global instances
cache = RedisCache()
login_rate_limiter = RateLimiter("ratelimit:login:", cache)
