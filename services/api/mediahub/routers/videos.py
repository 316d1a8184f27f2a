"""
Video endpoints:
  POST   /videos              — publish a video (media + thumbnail → MinIO)
  GET    /videos              — list published videos (optionally by owner)
  GET    /videos/{id}         — fetch a single video
  PATCH  /videos/{id}         — update title / description (owner)
  PATCH  /videos/{id}/publish — flip the published flag (owner)
  DELETE /videos/{id}         — deactivate (owner; cascades to comments)
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub import lifecycle
from mediahub.auth import current_actor
from mediahub.clients.minio_client import get_presigned_url, upload_media
from mediahub.database import get_db
from mediahub.errors import InvalidRequest, NotFound, ServiceUnavailable
from mediahub.identifiers import EntityId, as_entity_id
from mediahub.media_release import dispatch_media_release
from mediahub.models import Video
from mediahub.ownership import load_owned
from mediahub.schemas import DeactivationResponse, VideoCreate, VideoResponse, VideoUpdate

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _build_video_response(video: Video) -> VideoResponse:
    return VideoResponse(
        id=video.id,
        owner_id=video.owner_id,
        title=video.title,
        description=video.description,
        duration=video.duration,
        video_url=get_presigned_url(video.video_key),
        thumbnail_url=get_presigned_url(video.thumbnail_key),
        views=video.views,
        is_published=video.is_published,
        like_count=video.like_count,
        created_at=video.created_at,
    )


@router.post("/", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def publish_video(
    body: VideoCreate,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    1. Upload the video file and thumbnail to MinIO.
    2. Persist metadata.
    If the row cannot be written, the uploaded objects are released again.
    """
    with tracer.start_as_current_span("publish_video") as span:
        try:
            # boto3 is blocking
            video_key = await asyncio.to_thread(
                upload_media, body.video_base64, "video", "video"
            )
            thumbnail_key = await asyncio.to_thread(
                upload_media, body.thumbnail_base64, "image", "thumbnail"
            )
        except InvalidRequest:
            raise
        except Exception as exc:
            logger.warning("Media upload failed: %s", exc)
            raise ServiceUnavailable("Media storage unavailable") from exc

        video = Video(
            owner_id=actor,
            title=body.title.strip(),
            description=body.description.strip(),
            duration=body.duration,
            video_key=video_key,
            thumbnail_key=thumbnail_key,
            views=0,
            is_published=True,
            like_count=0,
            is_active=True,
        )
        db.add(video)
        try:
            await db.flush()
            await db.refresh(video)
        except Exception:
            await dispatch_media_release([video_key, thumbnail_key])
            raise

        span.set_attribute("video.id", str(video.id))
        logger.info("Video published: %s by %s", video.id, actor)
        return _build_video_response(video)


@router.get("/", response_model=list[VideoResponse])
async def list_videos(
    owner_id: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    query = select(Video).where(Video.is_active.is_(True), Video.is_published.is_(True))
    if owner_id:
        query = query.where(Video.owner_id == as_entity_id(owner_id))
    rows = await db.execute(
        query.order_by(Video.created_at.desc()).limit(limit).offset(offset)
    )
    return [_build_video_response(v) for v in rows.scalars().all()]


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(video_id: str, db: AsyncSession = Depends(get_db)):
    video = await db.get(Video, as_entity_id(video_id))
    if video is None or not video.is_active:
        raise NotFound("Video not found")
    return _build_video_response(video)


@router.patch("/{video_id}", response_model=VideoResponse)
async def update_video(
    video_id: str,
    body: VideoUpdate,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    if body.title is None and body.description is None:
        raise InvalidRequest("At least one field is required")
    video = await load_owned(db, Video, video_id, actor)
    if body.title is not None:
        video.title = body.title.strip()
    if body.description is not None:
        video.description = body.description.strip()
    await db.flush()
    return _build_video_response(video)


@router.patch("/{video_id}/publish", response_model=VideoResponse)
async def toggle_publish_status(
    video_id: str,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    video = await load_owned(db, Video, video_id, actor)
    video.is_published = not video.is_published
    await db.flush()
    logger.info("Video %s published=%s", video.id, video.is_published)
    return _build_video_response(video)


@router.delete("/{video_id}", response_model=DeactivationResponse)
async def delete_video(
    video_id: str,
    background_tasks: BackgroundTasks,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await lifecycle.deactivate(db, actor, lifecycle.EntityKind.VIDEO, video_id)
    if result.media_handles:
        background_tasks.add_task(dispatch_media_release, result.media_handles)
    return DeactivationResponse(
        kind=result.kind.value, id=result.entity_id, deactivated=result.deactivated
    )
