"""Toggle engine: parity, counter consistency, races and rollback."""
import asyncio
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from mediahub import ledger, lifecycle, relation_store
from mediahub.database import AsyncSessionLocal
from mediahub.errors import (
    CounterDesyncError,
    InvalidActor,
    InvalidRelationKind,
    InvalidTarget,
    SelfReferenceNotAllowed,
)
from mediahub.models import RelationKind, User, Video
from mediahub.toggle import toggle


async def _toggle(actor_id, kind, target_id):
    async with AsyncSessionLocal() as session:
        return await toggle(session, actor_id, kind, target_id)


async def test_like_unlike_and_second_actor(make_user, make_video, helpers):
    owner = await make_user()
    alice = await make_user()
    bob = await make_user()
    video = await make_video(owner)

    result = await _toggle(alice.id, RelationKind.VIDEO_LIKE, video.id)
    assert result.now_active is True
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 1

    result = await _toggle(alice.id, RelationKind.VIDEO_LIKE, video.id)
    assert result.now_active is False
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 0

    await _toggle(alice.id, RelationKind.VIDEO_LIKE, video.id)
    result = await _toggle(bob.id, RelationKind.VIDEO_LIKE, video.id)
    assert result.now_active is True
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 2
    assert await helpers.relation_rows(RelationKind.VIDEO_LIKE, video.id) == 2


async def test_parity_over_many_toggles(make_user, make_tweet, helpers):
    owner = await make_user()
    actors = [await make_user() for _ in range(3)]
    tweet = await make_tweet(owner)

    flips = {actor.id: 0 for actor in actors}
    sequence = [0, 1, 0, 2, 0, 1, 1, 2, 0]
    for index in sequence:
        actor = actors[index]
        result = await _toggle(actor.id, "tweet_like", tweet.id)
        flips[actor.id] += 1
        assert result.now_active is (flips[actor.id] % 2 == 1)

    live = sum(1 for n in flips.values() if n % 2 == 1)
    assert await helpers.counter(RelationKind.TWEET_LIKE, tweet.id) == live
    assert await helpers.relation_rows(RelationKind.TWEET_LIKE, tweet.id) == live


async def test_string_ids_hit_the_same_relation(make_user, make_comment, make_video, helpers):
    owner = await make_user()
    fan = await make_user()
    comment = await make_comment(await make_video(owner), owner)

    assert (await _toggle(str(fan.id), "comment_like", str(comment.id))).now_active is True
    assert (await _toggle(fan.id, RelationKind.COMMENT_LIKE, comment.id)).now_active is False
    assert await helpers.counter(RelationKind.COMMENT_LIKE, comment.id) == 0


async def test_subscription_moves_subscriber_count(make_user, helpers):
    channel = await make_user()
    viewer = await make_user()

    result = await _toggle(viewer.id, RelationKind.SUBSCRIPTION, channel.id)
    assert result.now_active is True
    assert await helpers.counter(RelationKind.SUBSCRIPTION, channel.id) == 1
    assert await helpers.counter(RelationKind.SUBSCRIPTION, viewer.id) == 0


async def test_self_subscription_is_rejected(make_user, helpers):
    user = await make_user()
    with pytest.raises(SelfReferenceNotAllowed):
        await _toggle(user.id, RelationKind.SUBSCRIPTION, user.id)
    assert await helpers.relation_rows(RelationKind.SUBSCRIPTION, user.id) == 0


async def test_liking_own_video_is_allowed(make_user, make_video, helpers):
    owner = await make_user()
    video = await make_video(owner)
    assert (await _toggle(owner.id, RelationKind.VIDEO_LIKE, video.id)).now_active is True
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 1


async def test_inactive_target_is_rejected_and_count_frozen(make_user, make_video, helpers):
    owner = await make_user()
    fan = await make_user()
    video = await make_video(owner)
    await _toggle(fan.id, RelationKind.VIDEO_LIKE, video.id)

    async with AsyncSessionLocal() as session:
        await lifecycle.deactivate(session, owner.id, lifecycle.EntityKind.VIDEO, video.id)

    with pytest.raises(InvalidTarget):
        await _toggle(fan.id, RelationKind.VIDEO_LIKE, video.id)
    with pytest.raises(InvalidTarget):
        await _toggle((await make_user()).id, RelationKind.VIDEO_LIKE, video.id)

    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 1
    assert await helpers.relation_rows(RelationKind.VIDEO_LIKE, video.id) == 1


async def test_missing_target_is_invalid(make_user):
    fan = await make_user()
    with pytest.raises(InvalidTarget):
        await _toggle(fan.id, RelationKind.VIDEO_LIKE, uuid.uuid4())


async def test_wrong_kind_for_target_is_invalid(make_user, make_video):
    owner = await make_user()
    video = await make_video(owner)
    # a video id is not a comment
    with pytest.raises(InvalidTarget):
        await _toggle(owner.id, RelationKind.COMMENT_LIKE, video.id)


async def test_unknown_kind(make_user, make_video):
    owner = await make_user()
    video = await make_video(owner)
    with pytest.raises(InvalidRelationKind):
        await _toggle(owner.id, "dislike", video.id)


async def test_missing_actor(make_user, make_video):
    video = await make_video(await make_user())
    with pytest.raises(InvalidActor):
        await _toggle(None, RelationKind.VIDEO_LIKE, video.id)


async def test_stale_hint_duplicate_insert_resolves_on(
    make_user, make_video, helpers, monkeypatch
):
    owner = await make_user()
    fan = await make_user()
    video = await make_video(owner)
    await _toggle(fan.id, RelationKind.VIDEO_LIKE, video.id)

    async def never_exists(*args):
        return False

    monkeypatch.setattr(relation_store, "exists", never_exists)

    result = await _toggle(fan.id, RelationKind.VIDEO_LIKE, video.id)
    assert result.now_active is True
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 1
    assert await helpers.relation_rows(RelationKind.VIDEO_LIKE, video.id) == 1


async def test_stale_hint_empty_delete_resolves_off(
    make_user, make_video, helpers, monkeypatch
):
    owner = await make_user()
    fan = await make_user()
    video = await make_video(owner)

    async def always_exists(*args):
        return True

    monkeypatch.setattr(relation_store, "exists", always_exists)

    result = await _toggle(fan.id, RelationKind.VIDEO_LIKE, video.id)
    assert result.now_active is False
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 0


async def test_concurrent_first_toggles_count_once(
    make_user, make_video, helpers, monkeypatch
):
    owner = await make_user()
    fan = await make_user()
    video = await make_video(owner)

    # every request saw "not liked" before any of them wrote
    async def never_exists(*args):
        return False

    monkeypatch.setattr(relation_store, "exists", never_exists)

    results = await asyncio.gather(
        *(_toggle(fan.id, RelationKind.VIDEO_LIKE, video.id) for _ in range(5))
    )
    assert all(r.now_active for r in results)
    assert await helpers.relation_rows(RelationKind.VIDEO_LIKE, video.id) == 1
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 1


async def test_failed_counter_write_rolls_back_relation(
    make_user, make_video, helpers, monkeypatch
):
    owner = await make_user()
    fan = await make_user()
    video = await make_video(owner)

    async def broken_adjust(*args):
        raise OperationalError("UPDATE videos", {}, Exception("lock wait timeout"))

    monkeypatch.setattr(ledger, "adjust", broken_adjust)

    with pytest.raises(OperationalError):
        await _toggle(fan.id, RelationKind.VIDEO_LIKE, video.id)
    assert await helpers.relation_rows(RelationKind.VIDEO_LIKE, video.id) == 0
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 0


async def test_failed_rollback_surfaces_as_desync(make_user, make_video, monkeypatch):
    owner = await make_user()
    fan = await make_user()
    video = await make_video(owner)

    async def broken_adjust(*args):
        raise OperationalError("UPDATE videos", {}, Exception("connection lost"))

    async def broken_rollback():
        raise OperationalError("ROLLBACK", {}, Exception("connection lost"))

    monkeypatch.setattr(ledger, "adjust", broken_adjust)

    async with AsyncSessionLocal() as session:
        monkeypatch.setattr(session, "rollback", broken_rollback)
        with pytest.raises(CounterDesyncError):
            await toggle(session, fan.id, RelationKind.VIDEO_LIKE, video.id)


async def test_counter_underflow_is_desync_and_keeps_relation(
    make_user, make_video, helpers
):
    owner = await make_user()
    fan = await make_user()
    video = await make_video(owner)

    # relation written without its counter
    async with AsyncSessionLocal() as session:
        await relation_store.insert(session, fan.id, RelationKind.VIDEO_LIKE, video.id)
        await session.commit()

    with pytest.raises(CounterDesyncError):
        await _toggle(fan.id, RelationKind.VIDEO_LIKE, video.id)

    assert await helpers.relation_rows(RelationKind.VIDEO_LIKE, video.id) == 1
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 0


async def test_deactivated_actor_relations_stay_counted(make_user, make_video, helpers):
    owner = await make_user()
    fan = await make_user()
    video = await make_video(owner)
    await _toggle(fan.id, RelationKind.VIDEO_LIKE, video.id)

    async with AsyncSessionLocal() as session:
        await lifecycle.deactivate(session, fan.id, lifecycle.EntityKind.USER, fan.id)

    assert await helpers.is_active(User, fan.id) is False
    assert await helpers.is_active(Video, video.id) is True
    assert await helpers.counter(RelationKind.VIDEO_LIKE, video.id) == 1
