from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis

from smart_money_indexer.app.config import Settings

logger = logging.getLogger(__name__)


class RedisJsonCache:
    """
    Short-TTL cache of JSON-serialisable query results in Redis.

    Redis errors are logged and treated as a miss: the cache never fails a query.
    """

    def __init__(self, redis: Redis, *, prefix: str = "smart-money-indexer:") -> None:
        self._redis = redis
        self._prefix = prefix

    async def get(self, key: str) -> Any | None:
        try:
            value = await self._redis.get(self._prefix + key)
        except Exception as e:
            logger.warning("Cache get failed: %s", e)
            return None
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode()
        return json.loads(value)

    async def set(self, key: str, value: Any, *, ttl_seconds: int) -> None:
        try:
            await self._redis.set(self._prefix + key, json.dumps(value, default=str), ex=ttl_seconds)
        except Exception as e:
            logger.warning("Cache set failed: %s", e)

    async def close(self) -> None:
        await self._redis.aclose()


class NullJsonCache:
    """Cache used when Redis is disabled: every lookup is a miss."""

    async def get(self, key: str) -> Any | None:
        return None

    async def set(self, key: str, value: Any, *, ttl_seconds: int) -> None:
        return None

    async def close(self) -> None:
        return None


def create_json_cache(settings: Settings) -> RedisJsonCache | NullJsonCache:
    if not settings.redis_enabled:
        return NullJsonCache()
    return RedisJsonCache(Redis.from_url(settings.redis_url))
