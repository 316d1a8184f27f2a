"""
Comment endpoints:
  GET    /comments/video/{video_id} — active comments on an active video
  POST   /comments/video/{video_id} — add a comment
  PATCH  /comments/{id}             — edit (owner)
  DELETE /comments/{id}             — deactivate (owner)
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub import lifecycle
from mediahub.auth import current_actor
from mediahub.database import get_db
from mediahub.errors import InvalidTarget
from mediahub.identifiers import EntityId, as_entity_id
from mediahub.models import Comment, Video
from mediahub.ownership import load_owned
from mediahub.schemas import (
    CommentCreate,
    CommentResponse,
    CommentUpdate,
    DeactivationResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _active_video(db: AsyncSession, video_id: str) -> Video:
    video = await db.get(Video, as_entity_id(video_id))
    if video is None or not video.is_active:
        raise InvalidTarget("Video does not exist or is inactive")
    return video


@router.get("/video/{video_id}", response_model=list[CommentResponse])
async def list_video_comments(
    video_id: str,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    video = await _active_video(db, video_id)
    rows = await db.execute(
        select(Comment)
        .where(Comment.video_id == video.id, Comment.is_active.is_(True))
        .order_by(Comment.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return rows.scalars().all()


@router.post(
    "/video/{video_id}", response_model=CommentResponse, status_code=status.HTTP_201_CREATED
)
async def add_comment(
    video_id: str,
    body: CommentCreate,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    video = await _active_video(db, video_id)
    comment = Comment(
        video_id=video.id,
        owner_id=actor,
        content=body.content,
        like_count=0,
        is_active=True,
    )
    db.add(comment)
    await db.flush()
    await db.refresh(comment)
    logger.info("Comment %s added to video %s", comment.id, video.id)
    return comment


@router.patch("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: str,
    body: CommentUpdate,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    comment = await load_owned(db, Comment, comment_id, actor)
    comment.content = body.content
    await db.flush()
    return comment


@router.delete("/{comment_id}", response_model=DeactivationResponse)
async def delete_comment(
    comment_id: str,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await lifecycle.deactivate(db, actor, lifecycle.EntityKind.COMMENT, comment_id)
    return DeactivationResponse(
        kind=result.kind.value, id=result.entity_id, deactivated=result.deactivated
    )
