"""
Request-side half of media release.

Deactivation commits first; afterwards the handles it collected are handed
here as a FastAPI background task. Nothing in this module may raise into the
request: Kafka is tried first, the Redis retry set second, and a handle that
reaches neither is logged for manual cleanup.
"""
import logging
import time

from mediahub.clients.kafka_producer import publish_media_release
from mediahub.clients.redis_client import schedule_release_retry
from mediahub.telemetry import MEDIA_RELEASE_TOTAL

logger = logging.getLogger(__name__)


async def dispatch_media_release(handles: list[str]) -> None:
    for handle in handles:
        try:
            await publish_media_release(handle)
            continue
        except Exception as exc:
            logger.warning("Kafka unavailable for release of %s: %s", handle, exc)

        try:
            await schedule_release_retry(handle, attempt=0, first_seen=time.time(), delay=0)
            MEDIA_RELEASE_TOTAL.labels(outcome="requeued").inc()
        except Exception as exc:
            MEDIA_RELEASE_TOTAL.labels(outcome="dispatch_failed").inc()
            logger.error(
                "Could not dispatch release of %s (%s) — object must be removed manually",
                handle, exc,
            )
