"""Tests for app/cache.py — occupied-dates cache helpers over a mocked Redis."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from app import cache
from app.cache import (
    OCCUPIED_TTL,
    get_occupied_cache,
    invalidate_occupied_cache,
    set_occupied_cache,
)

from .factories import PROPERTY_ID

KEY = f"occupied:{PROPERTY_ID}"
RANGES = [{"checkIn": "2024-07-01", "checkOut": "2024-07-04"}]


def _redis(**methods) -> MagicMock:
    redis = MagicMock()
    redis.get = AsyncMock(return_value=None)
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    for name, mock in methods.items():
        setattr(redis, name, mock)
    return redis


class TestOccupiedCache:
    async def test_hit(self):
        redis = _redis(get=AsyncMock(return_value=json.dumps(RANGES)))
        with patch.object(cache, "get_redis", return_value=redis):
            assert await get_occupied_cache(PROPERTY_ID) == RANGES
        redis.get.assert_awaited_once_with(KEY)

    async def test_miss(self):
        with patch.object(cache, "get_redis", return_value=_redis()):
            assert await get_occupied_cache(PROPERTY_ID) is None

    async def test_set_uses_ttl(self):
        redis = _redis()
        with patch.object(cache, "get_redis", return_value=redis):
            await set_occupied_cache(PROPERTY_ID, RANGES)
        redis.setex.assert_awaited_once_with(KEY, OCCUPIED_TTL, json.dumps(RANGES))

    async def test_invalidate(self):
        redis = _redis()
        with patch.object(cache, "get_redis", return_value=redis):
            await invalidate_occupied_cache(PROPERTY_ID)
        redis.delete.assert_awaited_once_with(KEY)

    async def test_redis_down_is_not_fatal(self):
        down = AsyncMock(side_effect=RedisConnectionError("refused"))
        redis = _redis(get=down, setex=down, delete=down)
        with patch.object(cache, "get_redis", return_value=redis):
            assert await get_occupied_cache(PROPERTY_ID) is None
            await set_occupied_cache(PROPERTY_ID, RANGES)
            await invalidate_occupied_cache(PROPERTY_ID)


class TestRedisLifecycle:
    async def test_close_redis_resets_singleton(self):
        fake = MagicMock()
        fake.aclose = AsyncMock()
        with patch.object(cache, "_redis", fake):
            await cache.close_redis()
            assert cache._redis is None
        fake.aclose.assert_awaited_once()
