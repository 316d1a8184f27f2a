"""
Counter ledger — denormalized per-target counters.

  video_like   → videos.like_count
  comment_like → comments.like_count
  tweet_like   → tweets.like_count
  subscription → users.subscriber_count

This module is the only code allowed to write those columns. adjust() runs
inside the toggle engine's transaction as a single conditional UPDATE, so
the relation write and the counter move commit (or roll back) together.
Reads never scan the relations table; find_drifts() and reconcile() do, and
exist only for out-of-band repair.
"""
import logging
from dataclasses import dataclass
from typing import NamedTuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub import relation_store
from mediahub.errors import CounterDesyncError, InvalidTarget
from mediahub.identifiers import EntityId
from mediahub.models import Comment, RelationKind, Tweet, User, Video

logger = logging.getLogger(__name__)


class CounterSlot(NamedTuple):
    model: type
    column: str


COUNTERS: dict[RelationKind, CounterSlot] = {
    RelationKind.VIDEO_LIKE: CounterSlot(Video, "like_count"),
    RelationKind.COMMENT_LIKE: CounterSlot(Comment, "like_count"),
    RelationKind.TWEET_LIKE: CounterSlot(Tweet, "like_count"),
    RelationKind.SUBSCRIPTION: CounterSlot(User, "subscriber_count"),
}


def target_model(kind: RelationKind) -> type:
    """The entity class a relation of ``kind`` points at."""
    return COUNTERS[kind].model


@dataclass(frozen=True)
class Drift:
    kind: RelationKind
    target_id: EntityId
    recorded: int
    actual: int


async def adjust(db: AsyncSession, kind: RelationKind, target_id: EntityId, delta: int) -> None:
    """
    Move the counter of ``target_id`` by ``delta`` (+1 or -1).

    The UPDATE only matches an active target, and a decrement only matches a
    positive counter. When nothing matches:
      • target gone or inactive → InvalidTarget
      • counter already at zero  → CounterDesyncError
    A zero counter under an existing relation means the ledger drifted
    earlier, outside this call; nothing written here caused it. The error
    flags the pre-existing drift for reconcile() once the caller has rolled
    back. The caller owns the transaction and must roll back on either error.
    """
    if delta not in (1, -1):
        raise ValueError(f"Counter delta must be +1 or -1, got {delta}")

    slot = COUNTERS[kind]
    model = slot.model
    column = getattr(model, slot.column)

    conditions = [model.id == target_id, model.is_active.is_(True)]
    if delta < 0:
        conditions.append(column > 0)

    result = await db.execute(
        update(model)
        .where(*conditions)
        .values({slot.column: column + delta})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    state = await db.execute(
        select(model.is_active).where(model.id == target_id)
    )
    is_active = state.scalar_one_or_none()
    if not is_active:
        raise InvalidTarget()

    logger.error(
        "Pre-existing counter drift on %s %s: %s=0 while a relation exists; "
        "relation write rolled back, run reconcile_counters",
        kind.value, target_id, slot.column,
    )
    raise CounterDesyncError(
        f"{slot.column} of {target_id} was already out of step with its relations"
    )


async def read(db: AsyncSession, kind: RelationKind, target_id: EntityId) -> int:
    """
    Current counter value. Served for inactive targets too (the value is
    frozen at deactivation); only a missing target is an error.
    """
    slot = COUNTERS[kind]
    model = slot.model
    result = await db.execute(
        select(getattr(model, slot.column)).where(model.id == target_id)
    )
    value = result.scalar_one_or_none()
    if value is None:
        raise InvalidTarget()
    return int(value)


async def find_drifts(
    db: AsyncSession,
    kind: RelationKind,
    target_id: EntityId | None = None,
) -> list[Drift]:
    """Counters that disagree with the relations table right now. Read-only."""
    slot = COUNTERS[kind]
    model = slot.model
    column = getattr(model, slot.column)
    actual = relation_store.live_count(kind, model.id)

    query = select(model.id, column, actual).where(column != actual)
    if target_id is not None:
        query = query.where(model.id == target_id)
    rows = await db.execute(query)
    return [
        Drift(kind, entity_id, int(recorded), int(live))
        for entity_id, recorded, live in rows.all()
    ]


async def reconcile(
    db: AsyncSession,
    kind: RelationKind,
    target_id: EntityId | None = None,
) -> list[Drift]:
    """
    Rewrite drifted counters as the live relation count and commit.

    The count is taken inside the UPDATE itself, so a toggle that commits
    between find_drifts() and the write is still counted. Meant for the
    reconciliation script, never for request handling.
    """
    drifts = await find_drifts(db, kind, target_id)
    if not drifts:
        return []

    slot = COUNTERS[kind]
    model = slot.model
    column = getattr(model, slot.column)

    corrected: list[Drift] = []
    for drift in drifts:
        await db.execute(
            update(model)
            .where(model.id == drift.target_id)
            .values({slot.column: relation_store.live_count(kind, model.id)})
            .execution_options(synchronize_session=False)
        )
        written = await db.execute(select(column).where(model.id == drift.target_id))
        fixed = Drift(kind, drift.target_id, drift.recorded, int(written.scalar_one()))
        corrected.append(fixed)
        logger.warning(
            "Reconciled %s on %s: %d → %d",
            slot.column, fixed.target_id, fixed.recorded, fixed.actual,
        )

    await db.commit()
    return corrected
