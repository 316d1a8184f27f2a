"""Media release: request-side dispatch and the worker's retry path."""
import json
import time

import pytest
from botocore.exceptions import ClientError

from mediahub import media_release
from mediahub.clients import minio_client, redis_client
from mediahub.config import settings
from mediahub.errors import RetryableExternalError
from mediahub.workers import media_release_worker as worker

NO_WAIT = {"backoff_min": 0, "backoff_max": 0}


class FakeRedis:
    """The handful of sorted-set commands the retry set uses."""

    def __init__(self):
        self.zsets: dict[str, dict[str, float]] = {}

    async def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    async def zrangebyscore(self, key, min, max, start=None, num=None):
        members = sorted(
            (score, member)
            for member, score in self.zsets.get(key, {}).items()
            if score <= float(max)
        )
        ordered = [member for _, member in members]
        if num is not None:
            return ordered[start:start + num]
        return ordered

    async def zrem(self, key, member):
        return 1 if self.zsets.get(key, {}).pop(member, None) is not None else 0

    def entries(self) -> list[dict]:
        return [json.loads(m) for m in self.zsets.get(settings.media_release_retry_key, {})]


class FlakyStore:
    def __init__(self, failures: int):
        self.failures = failures
        self.calls: list[str] = []

    def __call__(self, handle: str) -> None:
        self.calls.append(handle)
        if len(self.calls) <= self.failures:
            raise RetryableExternalError(handle, "503 Slow Down")


# ───────────────────────────── dispatch ─────────────────────────────


async def test_dispatch_prefers_kafka(monkeypatch):
    published = []

    async def publish(handle, attempt=0):
        published.append(handle)

    monkeypatch.setattr(media_release, "publish_media_release", publish)
    await media_release.dispatch_media_release(["video/a.mp4", "thumbnail/a.jpg"])
    assert published == ["video/a.mp4", "thumbnail/a.jpg"]


async def test_dispatch_falls_back_to_retry_set(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(redis_client, "_redis", fake)

    # producer never started
    await media_release.dispatch_media_release(["avatar/b.jpg"])

    [entry] = fake.entries()
    assert entry["handle"] == "avatar/b.jpg"
    assert entry["attempt"] == 0


async def test_dispatch_never_raises_when_everything_is_down(monkeypatch):
    monkeypatch.setattr(redis_client, "_redis", None)
    await media_release.dispatch_media_release(["video/c.mp4"])


# ───────────────────────────── worker ─────────────────────────────


async def test_release_retries_transient_failures():
    store = FlakyStore(failures=2)
    assert await worker.release_with_retry("video/d.mp4", release=store, attempts=3, **NO_WAIT)
    assert store.calls == ["video/d.mp4"] * 3


async def test_release_gives_up_after_attempts():
    store = FlakyStore(failures=10)
    assert not await worker.release_with_retry(
        "video/e.mp4", release=store, attempts=2, **NO_WAIT
    )
    assert len(store.calls) == 2


async def test_exhausted_handle_is_parked_for_later():
    fake = FakeRedis()
    store = FlakyStore(failures=10)
    msg = {"handle": "video/f.mp4", "attempt": 0, "requested_at": time.time()}

    await worker.process_message(msg, fake, release=store, attempts=2, **NO_WAIT)

    [entry] = fake.entries()
    assert entry["handle"] == "video/f.mp4"
    assert entry["attempt"] == 1
    score = fake.zsets[settings.media_release_retry_key][json.dumps(entry)]
    assert score > time.time()


async def test_old_handle_is_dropped():
    fake = FakeRedis()
    store = FlakyStore(failures=10)
    msg = {
        "handle": "video/g.mp4",
        "attempt": 6,
        "first_seen": time.time() - settings.media_release_max_age - 60,
    }

    await worker.process_message(msg, fake, release=store, attempts=1, **NO_WAIT)
    assert fake.entries() == []


async def test_malformed_event_is_ignored():
    store = FlakyStore(failures=0)
    await worker.process_message({"attempt": 1}, FakeRedis(), release=store)
    assert store.calls == []


async def test_sweep_releases_due_entries_once():
    fake = FakeRedis()
    await redis_client.schedule_release_retry(
        "cover/h.jpg", attempt=1, first_seen=time.time(), delay=0, r=fake
    )
    await redis_client.schedule_release_retry(
        "cover/later.jpg", attempt=1, first_seen=time.time(), delay=3600, r=fake
    )
    store = FlakyStore(failures=0)

    assert await worker.sweep_retry_set(fake, release=store, **NO_WAIT) == 1
    assert store.calls == ["cover/h.jpg"]
    assert [e["handle"] for e in fake.entries()] == ["cover/later.jpg"]
    assert await worker.sweep_retry_set(fake, release=store, **NO_WAIT) == 0


def test_storage_errors_become_retryable(monkeypatch):
    class BrokenS3:
        def delete_object(self, **kwargs):
            raise ClientError(
                {"Error": {"Code": "SlowDown", "Message": "Please reduce your request rate"}},
                "DeleteObject",
            )

    monkeypatch.setattr(minio_client, "_s3", BrokenS3())
    with pytest.raises(RetryableExternalError) as info:
        minio_client.release_media("video/i.mp4")
    assert info.value.handle == "video/i.mp4"
