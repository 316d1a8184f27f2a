"""
Playlist endpoints:
  POST   /playlists                          — create
  GET    /playlists/{id}                     — playlist with its active videos
  GET    /playlists/user/{user_id}           — a user's active playlists
  PATCH  /playlists/{id}                     — rename / describe (owner)
  POST   /playlists/{id}/videos/{video_id}   — add a video (owner)
  DELETE /playlists/{id}/videos/{video_id}   — remove a video (owner)
  DELETE /playlists/{id}                     — deactivate (owner)
"""
import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub import lifecycle
from mediahub.auth import current_actor
from mediahub.database import get_db
from mediahub.errors import InvalidRequest, InvalidTarget, NotFound
from mediahub.identifiers import EntityId, as_entity_id
from mediahub.models import Playlist, PlaylistVideo, Video
from mediahub.ownership import load_owned
from mediahub.schemas import (
    DeactivationResponse,
    PlaylistCreate,
    PlaylistResponse,
    PlaylistUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _active_video_ids(db: AsyncSession, playlist_id: uuid.UUID) -> list[uuid.UUID]:
    rows = await db.execute(
        select(PlaylistVideo.video_id)
        .join(Video, Video.id == PlaylistVideo.video_id)
        .where(PlaylistVideo.playlist_id == playlist_id, Video.is_active.is_(True))
        .order_by(PlaylistVideo.added_at)
    )
    return list(rows.scalars().all())


async def _build_playlist_response(db: AsyncSession, playlist: Playlist) -> PlaylistResponse:
    return PlaylistResponse(
        id=playlist.id,
        owner_id=playlist.owner_id,
        name=playlist.name,
        description=playlist.description,
        created_at=playlist.created_at,
        video_ids=await _active_video_ids(db, playlist.id),
    )


@router.post("/", response_model=PlaylistResponse, status_code=status.HTTP_201_CREATED)
async def create_playlist(
    body: PlaylistCreate,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    playlist = Playlist(
        owner_id=actor, name=body.name.strip(), description=body.description, is_active=True
    )
    db.add(playlist)
    await db.flush()
    await db.refresh(playlist)
    logger.info("Playlist %s created by %s", playlist.id, actor)
    return await _build_playlist_response(db, playlist)


@router.get("/user/{user_id}", response_model=list[PlaylistResponse])
async def list_user_playlists(user_id: str, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(Playlist)
        .where(Playlist.owner_id == as_entity_id(user_id), Playlist.is_active.is_(True))
        .order_by(Playlist.created_at.desc())
    )
    return [await _build_playlist_response(db, p) for p in rows.scalars().all()]


@router.get("/{playlist_id}", response_model=PlaylistResponse)
async def get_playlist(playlist_id: str, db: AsyncSession = Depends(get_db)):
    playlist = await db.get(Playlist, as_entity_id(playlist_id))
    if playlist is None or not playlist.is_active:
        raise NotFound("Playlist not found")
    return await _build_playlist_response(db, playlist)


@router.patch("/{playlist_id}", response_model=PlaylistResponse)
async def update_playlist(
    playlist_id: str,
    body: PlaylistUpdate,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    if body.name is None and body.description is None:
        raise InvalidRequest("At least one field is required")
    playlist = await load_owned(db, Playlist, playlist_id, actor)
    if body.name is not None:
        playlist.name = body.name.strip()
    if body.description is not None:
        playlist.description = body.description
    await db.flush()
    return await _build_playlist_response(db, playlist)


async def _in_playlist(db: AsyncSession, playlist_id: uuid.UUID, video_id: uuid.UUID) -> bool:
    """Early answer for repeat adds; the composite primary key decides races."""
    return await db.get(PlaylistVideo, (playlist_id, video_id)) is not None


@router.post("/{playlist_id}/videos/{video_id}", response_model=PlaylistResponse)
async def add_video_to_playlist(
    playlist_id: str,
    video_id: str,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    playlist = await load_owned(db, Playlist, playlist_id, actor)
    video = await db.get(Video, as_entity_id(video_id))
    if video is None or not video.is_active:
        raise InvalidTarget("Video does not exist or is inactive")

    if not await _in_playlist(db, playlist.id, video.id):
        db.add(PlaylistVideo(playlist_id=playlist.id, video_id=video.id))
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent add got there first; same end state.
            await db.rollback()
            await db.refresh(playlist)
            logger.debug("Video %s already in playlist %s", video_id, playlist_id)
    return await _build_playlist_response(db, playlist)


@router.delete("/{playlist_id}/videos/{video_id}", response_model=PlaylistResponse)
async def remove_video_from_playlist(
    playlist_id: str,
    video_id: str,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    playlist = await load_owned(db, Playlist, playlist_id, actor)
    await db.execute(
        delete(PlaylistVideo).where(
            PlaylistVideo.playlist_id == playlist.id,
            PlaylistVideo.video_id == as_entity_id(video_id),
        )
    )
    return await _build_playlist_response(db, playlist)


@router.delete("/{playlist_id}", response_model=DeactivationResponse)
async def delete_playlist(
    playlist_id: str,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await lifecycle.deactivate(db, actor, lifecycle.EntityKind.PLAYLIST, playlist_id)
    return DeactivationResponse(
        kind=result.kind.value, id=result.entity_id, deactivated=result.deactivated
    )
