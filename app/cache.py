import json
from uuid import UUID

from loguru import logger
from redis.asyncio import Redis

from app.settings import REDIS_URL

_redis: Redis | None = None
OCCUPIED_TTL = 60  # 1 minute


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def _occupied_key(property_id: UUID) -> str:
    return f"occupied:{property_id}"


async def get_occupied_cache(property_id: UUID) -> list | None:
    try:
        data = await get_redis().get(_occupied_key(property_id))
        return json.loads(data) if data else None
    except Exception:
        logger.warning("Redis get failed, skipping occupied cache", exc_info=True)
        return None


async def set_occupied_cache(property_id: UUID, ranges: list) -> None:
    try:
        await get_redis().setex(
            _occupied_key(property_id), OCCUPIED_TTL, json.dumps(ranges)
        )
    except Exception:
        logger.warning("Redis set failed, skipping occupied cache", exc_info=True)


async def invalidate_occupied_cache(property_id: UUID) -> None:
    try:
        await get_redis().delete(_occupied_key(property_id))
    except Exception:
        logger.warning("Redis invalidate failed for occupied cache", exc_info=True)
