"""
Relation store — the (actor, kind, target) table.

The uniqueness constraint on the table is the source of truth for toggle
state; exists() is only a hint for which branch to try first.
"""
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import ColumnElement, ScalarSelect

from mediahub.errors import DuplicateRelation
from mediahub.identifiers import EntityId
from mediahub.models import Relation, RelationKind, User

logger = logging.getLogger(__name__)


def _tuple_clause(actor_id: EntityId, kind: RelationKind, target_id: EntityId):
    return (
        Relation.actor_id == actor_id,
        Relation.kind == kind,
        Relation.target_id == target_id,
    )


async def exists(
    db: AsyncSession, actor_id: EntityId, kind: RelationKind, target_id: EntityId
) -> bool:
    row = await db.execute(
        select(Relation.id).where(*_tuple_clause(actor_id, kind, target_id)).limit(1)
    )
    return row.first() is not None


async def insert(
    db: AsyncSession, actor_id: EntityId, kind: RelationKind, target_id: EntityId
) -> Relation:
    """
    Insert the relation inside the caller's transaction.

    On a uniqueness violation the transaction is rolled back (nothing else
    has been written yet when the toggle engine calls this) and
    DuplicateRelation is raised.
    """
    relation = Relation(actor_id=actor_id, kind=kind, target_id=target_id)
    db.add(relation)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        logger.debug("Duplicate relation %s %s→%s", kind.value, actor_id, target_id)
        raise DuplicateRelation(f"{kind.value} {actor_id}→{target_id}") from exc
    return relation


async def remove(
    db: AsyncSession, actor_id: EntityId, kind: RelationKind, target_id: EntityId
) -> bool:
    """Delete the relation. Returns False when there was nothing to delete."""
    result = await db.execute(
        delete(Relation)
        .where(*_tuple_clause(actor_id, kind, target_id))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def live_count(kind: RelationKind, target_column: ColumnElement) -> ScalarSelect:
    """
    Correlated COUNT(*) of ``kind`` relations pointing at ``target_column``.

    Meant to be embedded in a SELECT or UPDATE over the target table so the
    count is taken by the same statement that uses it. Reconciliation only,
    never on the request path.
    """
    return (
        select(func.count())
        .select_from(Relation)
        .where(Relation.kind == kind, Relation.target_id == target_column)
        .scalar_subquery()
    )


async def list_actors(
    db: AsyncSession,
    kind: RelationKind,
    target_id: EntityId,
    limit: int = 100,
    offset: int = 0,
) -> list[EntityId]:
    """Actors holding ``kind`` on ``target_id``, newest first."""
    result = await db.execute(
        select(Relation.actor_id)
        .join(User, User.id == Relation.actor_id)
        .where(
            Relation.kind == kind,
            Relation.target_id == target_id,
            User.is_active.is_(True),
        )
        .order_by(Relation.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def list_targets(
    db: AsyncSession,
    actor_id: EntityId,
    kind: RelationKind,
) -> list[EntityId]:
    result = await db.execute(
        select(Relation.target_id)
        .where(Relation.actor_id == actor_id, Relation.kind == kind)
        .order_by(Relation.created_at.desc())
    )
    return list(result.scalars().all())
