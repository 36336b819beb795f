import json
from typing import Any, Awaitable, Callable, Optional

from redis.asyncio import Redis

from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class CacheService:
    """
    Opportunistic Redis cache for short-lived JSON values

    Read and write failures are logged and treated as a miss, so a cache
    outage only costs a live fetch.
    """

    def __init__(self, redis_client: Redis, key_prefix: str = "cache:"):
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _get_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get_json(self, key: str) -> Optional[Any]:
        try:
            data = await self.redis.get(self._get_key(key))
        except Exception as e:
            logger.warning(f"Cache read failed: {e}", extra={"cache_key": key})
            return None

        if data is None:
            return None
        try:
            return json.loads(data)
        except ValueError:
            logger.warning("Discarding undecodable cache entry", extra={"cache_key": key})
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self.redis.set(self._get_key(key), json.dumps(value, default=str), ex=ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed: {e}", extra={"cache_key": key})

    async def get_or_set(
        self,
        key: str,
        ttl_seconds: int,
        loader: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return the cached value or load, cache and return a fresh one"""
        cached = await self.get_json(key)
        if cached is not None:
            return cached

        value = await loader()
        if value is not None:
            await self.set_json(key, value, ttl_seconds)
        return value
