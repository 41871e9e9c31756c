"""Async Redis client shared by the application.

Used by the Redis-backed view dedup cache; constructed once in the lifespan
and closed on shutdown.
"""

import redis.asyncio as aioredis

from app.core.config import settings


def create_redis_client() -> aioredis.Redis:
    return aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=2,
    )
