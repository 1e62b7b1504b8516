from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from voyonx.core.config import get_settings

logger = logging.getLogger(__name__)

_redis_client: Redis | None = None


async def get_redis() -> Redis:
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class RedisSlot:
    """A single string-keyed storage slot."""

    def __init__(self, redis: Redis, key: str, ttl_sec: int | None = None) -> None:
        self.redis = redis
        self.key = key
        self.ttl_sec = ttl_sec

    async def read(self) -> str | None:
        return await self.redis.get(self.key)

    async def write(self, value: str) -> None:
        if self.ttl_sec:
            await self.redis.setex(self.key, self.ttl_sec, value)
        else:
            await self.redis.set(self.key, value)

    async def clear(self) -> None:
        await self.redis.delete(self.key)


async def redis_ready() -> bool:
    try:
        return bool(await (await get_redis()).ping())
    except (RedisError, OSError) as exc:
        logger.warning("Redis health check failed", extra={"error": str(exc)})
        return False
