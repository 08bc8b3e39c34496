import logging
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from agri_rental.core.config import settings

logger = logging.getLogger(__name__)

# Backs the per-user rate limit and the Idempotency-Key response cache.
redis: Optional[Redis] = None


async def init_redis() -> Redis:
    global redis
    client = Redis.from_url(settings.REDIS_URL, decode_responses=False, socket_connect_timeout=5)
    try:
        await client.ping()
    except RedisError as e:
        logger.error(f"Failed to connect to Redis: {e}")
        await client.close()
        raise
    redis = client
    logger.info(f"Connected to Redis at {settings.REDIS_URL}")
    return redis


async def close_redis():
    global redis
    if redis is not None:
        await redis.close()
        redis = None


def optional_redis() -> Optional[Redis]:
    """The client when connected, else None for callers that can run without it"""
    return redis


async def ping_redis() -> bool:
    if redis is None:
        return False
    try:
        return bool(await redis.ping())
    except RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return False
