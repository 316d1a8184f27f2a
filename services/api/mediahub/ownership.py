"""
Ownership guard for owned entities (videos, comments, tweets, playlists,
and users themselves).
"""
from typing import Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from mediahub.errors import InvalidActor, InvalidTarget, NotOwner
from mediahub.identifiers import RawId, as_entity_id

T = TypeVar("T")


def authorize(actor_id: Optional[RawId], entity) -> None:  # noqa: ANN001
    """Raise NotOwner unless ``actor_id`` is the entity's owner."""
    if actor_id is None:
        raise InvalidActor()
    # Both sides go through the same normalization before comparing.
    if as_entity_id(entity.owner_id) != as_entity_id(actor_id):
        raise NotOwner()


async def load_owned(
    db: AsyncSession,
    model: type[T],
    entity_id: RawId,
    actor_id: Optional[RawId],
    *,
    require_active: bool = True,
) -> T:
    """
    Fetch an entity for mutation by its owner.

    A missing entity is reported as NotOwner so non-owners learn nothing
    about existence; the owner of an inactive entity gets InvalidTarget.
    """
    entity = await db.get(model, as_entity_id(entity_id))
    if entity is None:
        raise NotOwner()
    authorize(actor_id, entity)
    if require_active and not entity.is_active:
        raise InvalidTarget()
    return entity
