"""
Media-release worker — Kafka consumer.

For every 'media-release' event:
  1. Delete the object from MinIO, retrying with exponential backoff.
  2. If every attempt fails, park the handle in the Redis retry set
     (media-release:retry) with a due time in the future.

Alongside the consumer, a sweeper drains due entries from the retry set and
runs them through the same path. Handles older than media_release_max_age
are dropped with an ERROR log so the set cannot grow forever.

Nothing here can affect a deactivation: by the time an event exists the
entity is already inactive in the database.

Run with:  python -m mediahub.workers.media_release_worker
"""
import asyncio
import json
import logging
import time
from typing import Callable, Optional

import redis.asyncio as aioredis
from aiokafka import AIOKafkaConsumer
from opentelemetry import trace
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mediahub.clients import minio_client
from mediahub.clients.redis_client import pop_due_releases, schedule_release_retry
from mediahub.config import settings
from mediahub.errors import RetryableExternalError
from mediahub.telemetry import MEDIA_RELEASE_TOTAL, setup_tracing

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


# ─────────────────────────── Release ─────────────────────────────────────

async def release_with_retry(
    handle: str,
    release: Callable[[str], None] = minio_client.release_media,
    attempts: Optional[int] = None,
    backoff_min: Optional[float] = None,
    backoff_max: Optional[float] = None,
) -> bool:
    """
    Try to release ``handle``; True once it is gone, False when every
    attempt raised RetryableExternalError.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(RetryableExternalError),
        stop=stop_after_attempt(max(1, attempts or settings.media_release_attempts)),
        wait=wait_exponential(
            multiplier=1,
            min=settings.media_release_backoff_min if backoff_min is None else backoff_min,
            max=settings.media_release_backoff_max if backoff_max is None else backoff_max,
        ),
    )
    try:
        async for attempt in retrying:
            with attempt:
                # boto3 is blocking
                await asyncio.to_thread(release, handle)
    except RetryError as exc:
        logger.warning(
            "Release of %s failed after %d attempts: %s",
            handle, exc.last_attempt.attempt_number, exc.last_attempt.exception(),
        )
        return False
    return True


# ─────────────────────────── Message Handler ─────────────────────────────

async def process_message(
    msg: dict,
    redis: Optional[aioredis.Redis] = None,
    release: Callable[[str], None] = minio_client.release_media,
    **retry_options,
) -> None:
    handle = msg.get("handle")
    if not handle:
        logger.warning("Malformed MediaRelease event: %s", msg)
        return

    attempt = int(msg.get("attempt", 0))
    first_seen = float(msg.get("first_seen") or msg.get("requested_at") or time.time())

    with tracer.start_as_current_span("media_release") as span:
        span.set_attribute("media.handle", handle)
        span.set_attribute("media.attempt", attempt)

        if await release_with_retry(handle, release=release, **retry_options):
            MEDIA_RELEASE_TOTAL.labels(outcome="released").inc()
            logger.info("Released media %s (attempt %d)", handle, attempt)
            return

        if time.time() - first_seen > settings.media_release_max_age:
            MEDIA_RELEASE_TOTAL.labels(outcome="dropped").inc()
            logger.error(
                "Giving up on media %s after %d rounds — object must be removed manually",
                handle, attempt + 1,
            )
            return

        await schedule_release_retry(
            handle,
            attempt=attempt + 1,
            first_seen=first_seen,
            delay=settings.media_release_requeue_delay,
            r=redis,
        )
        MEDIA_RELEASE_TOTAL.labels(outcome="requeued").inc()


async def sweep_retry_set(redis: aioredis.Redis, **kwargs) -> int:
    """Run every due retry-set entry through process_message."""
    due = await pop_due_releases(r=redis)
    for entry in due:
        await process_message(entry, redis, **kwargs)
    return len(due)


async def _sweeper(redis: aioredis.Redis) -> None:
    while True:
        try:
            swept = await sweep_retry_set(redis)
            if swept:
                logger.info("Retry sweep processed %d handle(s)", swept)
        except Exception as exc:
            logger.error("Retry sweep failed: %s", exc)
        await asyncio.sleep(settings.media_release_poll_interval)


# ─────────────────────────── Main Loop ───────────────────────────────────

async def main() -> None:
    setup_tracing()
    minio_client.init_minio()

    redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await redis.ping()

    consumer = AIOKafkaConsumer(
        settings.kafka_topic_media_release,
        bootstrap_servers=settings.kafka_bootstrap_servers,
        group_id=settings.kafka_consumer_group,
        auto_offset_reset="earliest",
        value_deserializer=lambda v: json.loads(v.decode("utf-8")),
    )
    await consumer.start()
    logger.info(
        "Media-release worker listening on topic '%s'", settings.kafka_topic_media_release
    )

    sweeper = asyncio.create_task(_sweeper(redis))
    try:
        async for msg in consumer:
            try:
                await process_message(msg.value, redis)
            except Exception as exc:
                logger.error("Media release error for %s: %s", msg.value, exc)
    finally:
        sweeper.cancel()
        await consumer.stop()
        await redis.aclose()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )
    asyncio.run(main())
