"""
Redis client wrapper.

Responsibilities:
  • Media release retry set — ZSET keyed by media-release:retry
                              score  = Unix time the entry becomes due
                              member = JSON {handle, attempt, first_seen}

The API writes to it when Kafka is unreachable; the media-release worker
writes to it when a release exhausts its retries, and drains due entries.
"""
import json
import logging
import time
from typing import Optional

import redis.asyncio as aioredis

from mediahub.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    if _redis is not None:
        await _redis.aclose()


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


# ─────────────────────── Media Release Retry Set (ZSET) ───────────────────

async def schedule_release_retry(
    handle: str,
    attempt: int,
    first_seen: float,
    delay: float,
    r: Optional[aioredis.Redis] = None,
) -> None:
    r = r or get_redis()
    member = json.dumps({"handle": handle, "attempt": attempt, "first_seen": first_seen})
    await r.zadd(settings.media_release_retry_key, {member: time.time() + delay})


async def pop_due_releases(
    limit: int = 100,
    r: Optional[aioredis.Redis] = None,
) -> list[dict]:
    """
    Remove and return entries whose due time has passed.
    ZREM decides ownership, so two workers never take the same entry.
    """
    r = r or get_redis()
    key = settings.media_release_retry_key
    members: list[str] = await r.zrangebyscore(key, "-inf", time.time(), start=0, num=limit)
    due = []
    for member in members:
        if await r.zrem(key, member):
            due.append(json.loads(member))
    return due
