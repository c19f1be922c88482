from __future__ import annotations

import redis

from foxhole.config import DEFAULT_REDIS_URL


def create_redis(url: str = DEFAULT_REDIS_URL) -> redis.Redis:
    # decode_responses=True => strings in/out instead of bytes
    return redis.Redis.from_url(url, decode_responses=True)
