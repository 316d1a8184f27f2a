"""
Toggle engine — flip an actor→target relation and keep its counter in step.

  toggle(actor, kind, target)
    1. validate: actor authenticated, kind known, no self-subscription,
       target exists and is active
    2. hint: relation_store.exists() picks the branch to try first
    3. write: insert (or delete) the relation — the uniqueness constraint,
       not the hint, decides the outcome
    4. adjust: ledger.adjust(±1) in the same transaction
    5. commit, or roll back the relation write if the adjustment failed

A duplicate insert resolves to now_active=True and a no-op delete to
now_active=False, both without touching the counter, so concurrent toggles
from one actor can never double-count.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub import ledger, relation_store
from mediahub.errors import (
    CounterDesyncError,
    DuplicateRelation,
    InvalidActor,
    InvalidRelationKind,
    InvalidTarget,
    SelfReferenceNotAllowed,
)
from mediahub.identifiers import EntityId, RawId, as_entity_id
from mediahub.models import RelationKind
from mediahub.telemetry import COUNTER_DESYNC_TOTAL, TOGGLES_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Kinds where actor and target live in the same id space and must differ.
# Liking your own video/comment/tweet is allowed.
SELF_REFERENCE_FORBIDDEN = frozenset({RelationKind.SUBSCRIPTION})


@dataclass(frozen=True)
class ToggleResult:
    kind: RelationKind
    target_id: EntityId
    now_active: bool


def parse_kind(kind: "RelationKind | str") -> RelationKind:
    if isinstance(kind, RelationKind):
        return kind
    try:
        return RelationKind(kind)
    except ValueError:
        raise InvalidRelationKind(f"Unknown relation kind: {kind!r}") from None


async def require_active_target(
    db: AsyncSession, kind: RelationKind, target_id: EntityId
) -> None:
    model = ledger.target_model(kind)
    row = await db.execute(select(model.is_active).where(model.id == target_id))
    if not row.scalar_one_or_none():
        raise InvalidTarget()


async def toggle(
    db: AsyncSession,
    actor_id: Optional[RawId],
    kind: "RelationKind | str",
    target_id: RawId,
) -> ToggleResult:
    """
    Flip the (actor, kind, target) relation and return the new state.

    Owns the transaction on ``db``: the result is committed (or nothing is)
    by the time this returns.
    """
    if actor_id is None:
        raise InvalidActor()
    actor = as_entity_id(actor_id)
    kind = parse_kind(kind)
    target = as_entity_id(target_id)

    with tracer.start_as_current_span("toggle_relation") as span:
        span.set_attribute("relation.kind", kind.value)
        span.set_attribute("relation.target_id", str(target))

        if kind in SELF_REFERENCE_FORBIDDEN and actor == target:
            raise SelfReferenceNotAllowed()
        await require_active_target(db, kind, target)

        if await relation_store.exists(db, actor, kind, target):
            now_active = await _switch_off(db, actor, kind, target)
        else:
            now_active = await _switch_on(db, actor, kind, target)

        span.set_attribute("relation.now_active", now_active)
        return ToggleResult(kind=kind, target_id=target, now_active=now_active)


async def _switch_on(
    db: AsyncSession, actor: EntityId, kind: RelationKind, target: EntityId
) -> bool:
    try:
        await relation_store.insert(db, actor, kind, target)
    except DuplicateRelation:
        # Lost a race with another toggle from the same actor.
        TOGGLES_TOTAL.labels(kind=kind.value, outcome="already_on").inc()
        return True

    await _adjust_and_commit(db, kind, target, +1)
    TOGGLES_TOTAL.labels(kind=kind.value, outcome="on").inc()
    logger.info("%s on: %s → %s", kind.value, actor, target)
    return True


async def _switch_off(
    db: AsyncSession, actor: EntityId, kind: RelationKind, target: EntityId
) -> bool:
    if not await relation_store.remove(db, actor, kind, target):
        await db.rollback()
        TOGGLES_TOTAL.labels(kind=kind.value, outcome="already_off").inc()
        return False

    await _adjust_and_commit(db, kind, target, -1)
    TOGGLES_TOTAL.labels(kind=kind.value, outcome="off").inc()
    logger.info("%s off: %s → %s", kind.value, actor, target)
    return False


async def _adjust_and_commit(
    db: AsyncSession, kind: RelationKind, target: EntityId, delta: int
) -> None:
    try:
        await ledger.adjust(db, kind, target, delta)
        await db.commit()
    except CounterDesyncError:
        # Drift found, not caused: this request's write is undone below.
        COUNTER_DESYNC_TOTAL.labels(kind=kind.value).inc()
        await _undo_relation_write(db, kind, target)
        raise
    except (InvalidTarget, SQLAlchemyError):
        await _undo_relation_write(db, kind, target)
        raise


async def _undo_relation_write(db: AsyncSession, kind: RelationKind, target: EntityId) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError as exc:
        COUNTER_DESYNC_TOTAL.labels(kind=kind.value).inc()
        logger.error(
            "Could not roll back relation write for %s on %s: %s",
            kind.value, target, exc,
        )
        raise CounterDesyncError(
            f"{kind.value} relation on {target} may be committed without its counter"
        ) from exc
