import logging
from typing import Optional

from fastapi import Depends, HTTPException
from redis.asyncio import Redis

from agri_rental.core.config import settings
from agri_rental.core.metrics import rate_limit_exceeded
from agri_rental.core.redis import optional_redis
from agri_rental.core.security import get_current_user

logger = logging.getLogger(__name__)


def _rate_limit_key(user_id: str) -> str:
    return f"rl:{user_id}"


async def check_rate_limit(user_id: str, role: str = "", redis: Optional[Redis] = None):
    """Fixed window of RATE_LIMIT mutating calls per user every RATE_LIMIT_WINDOW seconds"""
    redis = redis or optional_redis()
    if redis is None:
        logger.warning(f"Redis unavailable, rate limit not enforced for user {user_id}")
        return
    key = _rate_limit_key(user_id)
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, settings.RATE_LIMIT_WINDOW)
    if count > settings.RATE_LIMIT:
        rate_limit_exceeded.labels(role=role or "unknown").inc()
        retry_after = await redis.ttl(key)
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(max(retry_after, 1))},
        )


async def rate_limited_user(current_user=Depends(get_current_user)):
    await check_rate_limit(str(current_user.id), str(current_user.role))
    return current_user
