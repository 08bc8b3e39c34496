import json
import logging
from typing import Optional

from agri_rental.core.config import settings
from agri_rental.core.redis import optional_redis

logger = logging.getLogger(__name__)


def _idempotency_key(scope: str, key: str) -> str:
    return f"idemp:{scope}:{key}"


async def get_idempotent(scope: str, key: Optional[str]):
    """Cached response for a repeated Idempotency-Key, scoped per user"""
    if not key:
        return None
    redis = optional_redis()
    if redis is None:
        logger.warning(f"Redis unavailable, Idempotency-Key {key} not honoured")
        return None
    v = await redis.get(_idempotency_key(scope, key))
    return json.loads(v) if v else None


async def set_idempotent(scope: str, key: Optional[str], value: dict):
    if not key:
        return
    redis = optional_redis()
    if redis is None:
        return
    # NX keeps the first response when two requests race on one key
    await redis.set(
        _idempotency_key(scope, key),
        json.dumps(value, default=str),
        ex=settings.IDEMPOTENCY_TTL,
        nx=True,
    )
