"""
Soft-delete lifecycle.

Entities go active → inactive, never back. Deactivation is owner-only,
cascades exactly as declared in CASCADES, and returns the blob handles the
deactivated rows held so the caller can hand them to the media release
pipeline after commit. Relations pointing at a deactivated entity stay in
place and its counters keep their last value.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub.identifiers import EntityId, RawId, as_entity_id
from mediahub.models import Comment, Playlist, Tweet, User, Video
from mediahub.ownership import load_owned
from mediahub.telemetry import DEACTIVATIONS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class EntityKind(str, enum.Enum):
    USER = "user"
    VIDEO = "video"
    COMMENT = "comment"
    TWEET = "tweet"
    PLAYLIST = "playlist"


MODELS: dict[EntityKind, type] = {
    EntityKind.USER: User,
    EntityKind.VIDEO: Video,
    EntityKind.COMMENT: Comment,
    EntityKind.TWEET: Tweet,
    EntityKind.PLAYLIST: Playlist,
}


class Cascade(NamedTuple):
    child: EntityKind
    parent_column: str   # column on the child that holds the parent's id


# Declared cascades. Anything not listed here is not deactivated.
CASCADES: dict[EntityKind, tuple[Cascade, ...]] = {
    EntityKind.USER: (
        Cascade(EntityKind.VIDEO, "owner_id"),
        Cascade(EntityKind.COMMENT, "owner_id"),
        Cascade(EntityKind.TWEET, "owner_id"),
        Cascade(EntityKind.PLAYLIST, "owner_id"),
    ),
    EntityKind.VIDEO: (
        Cascade(EntityKind.COMMENT, "video_id"),
    ),
    EntityKind.COMMENT: (),
    EntityKind.TWEET: (),
    EntityKind.PLAYLIST: (),
}

# Blob-storage handles owned exclusively by each kind
MEDIA_ATTRIBUTES: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.USER: ("avatar_key", "cover_image_key"),
    EntityKind.VIDEO: ("video_key", "thumbnail_key"),
}


@dataclass
class DeactivationResult:
    kind: EntityKind
    entity_id: EntityId
    deactivated: dict[str, int] = field(default_factory=dict)
    media_handles: list[str] = field(default_factory=list)


async def deactivate(
    db: AsyncSession,
    actor_id: Optional[RawId],
    kind: EntityKind,
    entity_id: RawId,
) -> DeactivationResult:
    """
    Owner-initiated deactivation of one entity plus its declared cascades.

    Commits before returning. Media release is the caller's job and must
    not be able to undo this.
    """
    model = MODELS[kind]
    with tracer.start_as_current_span("deactivate_entity") as span:
        span.set_attribute("entity.kind", kind.value)
        entity = await load_owned(db, model, entity_id, actor_id)

        result = DeactivationResult(kind=kind, entity_id=as_entity_id(entity.id))
        await _deactivate_tree(db, kind, entity, result)
        await db.commit()

        for name, count in result.deactivated.items():
            DEACTIVATIONS_TOTAL.labels(entity=name).inc(count)
        span.set_attribute("entity.cascade_total", sum(result.deactivated.values()))
        logger.info(
            "Deactivated %s %s (cascade=%s, media=%d)",
            kind.value, result.entity_id, result.deactivated, len(result.media_handles),
        )
        return result


async def _deactivate_tree(
    db: AsyncSession, kind: EntityKind, entity, result: DeactivationResult  # noqa: ANN001
) -> None:
    entity.is_active = False
    result.deactivated[kind.value] = result.deactivated.get(kind.value, 0) + 1
    for attr in MEDIA_ATTRIBUTES.get(kind, ()):
        handle = getattr(entity, attr)
        if handle:
            result.media_handles.append(handle)

    for cascade in CASCADES[kind]:
        child_model = MODELS[cascade.child]
        children = await db.execute(
            select(child_model).where(
                getattr(child_model, cascade.parent_column) == entity.id,
                child_model.is_active.is_(True),
            )
        )
        for child in children.scalars().all():
            # Already handled through another path (e.g. a user's comment on
            # their own video).
            if not child.is_active:
                continue
            await _deactivate_tree(db, cascade.child, child, result)
