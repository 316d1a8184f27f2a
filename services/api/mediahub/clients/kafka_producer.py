"""
Async Kafka producer.

Publishes one event type:
  media-release — emitted after an entity holding blobs is deactivated.
                  Consumed by: media-release worker.
"""
import json
import logging
import time
from typing import Optional

from aiokafka import AIOKafkaProducer

from mediahub.config import settings

logger = logging.getLogger(__name__)

_producer: Optional[AIOKafkaProducer] = None


async def init_kafka() -> None:
    global _producer
    _producer = AIOKafkaProducer(
        bootstrap_servers=settings.kafka_bootstrap_servers,
        value_serializer=lambda v: json.dumps(v).encode("utf-8"),
        acks="all",          # wait for all in-sync replicas
        enable_idempotence=True,
    )
    await _producer.start()
    logger.info(
        "Kafka producer started → %s", settings.kafka_bootstrap_servers
    )


async def stop_kafka() -> None:
    if _producer:
        await _producer.stop()


def get_producer() -> AIOKafkaProducer:
    if _producer is None:
        raise RuntimeError("Kafka producer not initialised")
    return _producer


async def publish_media_release(handle: str, attempt: int = 0) -> None:
    """
    Emit a MediaRelease event to the 'media-release' topic.

    Schema:
      { handle, attempt, requested_at }

    Keyed by handle so repeated requests for one object land on one partition.
    """
    producer = get_producer()
    payload = {"handle": handle, "attempt": attempt, "requested_at": time.time()}
    await producer.send_and_wait(
        settings.kafka_topic_media_release, payload, key=handle.encode("utf-8")
    )
    logger.debug("Published MediaRelease event for %s", handle)
