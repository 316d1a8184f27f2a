"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

Counter fields (like_count, subscriber_count) only ever appear in responses.
"""
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from mediahub.models import RelationKind


# ──────────────────────────── Users ───────────────────────────────────────

class UserRegister(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=72)
    # Base64-encoded images — stored in MinIO; optional
    avatar_base64: Optional[str] = None
    cover_image_base64: Optional[str] = None


class UserLogin(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    full_name: str
    avatar_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    subscriber_count: int
    created_at: datetime


class LoginResponse(BaseModel):
    user: UserResponse
    access_token: str


# ──────────────────────────── Videos ──────────────────────────────────────

class VideoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    duration: float = Field(0.0, ge=0)
    video_base64: str
    thumbnail_base64: str


class VideoUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)


class VideoResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str
    duration: float
    video_url: Optional[str]   # pre-signed MinIO URL
    thumbnail_url: Optional[str]
    views: int
    is_published: bool
    like_count: int
    created_at: datetime


# ──────────────────────────── Comments ────────────────────────────────────

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    video_id: uuid.UUID
    owner_id: uuid.UUID
    content: str
    like_count: int
    created_at: datetime


# ──────────────────────────── Tweets ──────────────────────────────────────

class TweetCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=500)


class TweetUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=500)


class TweetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    content: str
    like_count: int
    created_at: datetime


# ──────────────────────────── Playlists ───────────────────────────────────

class PlaylistCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class PlaylistUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class PlaylistResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    description: Optional[str]
    created_at: datetime
    video_ids: list[uuid.UUID] = []


# ──────────────────────────── Relations ───────────────────────────────────

class ToggleResponse(BaseModel):
    kind: RelationKind
    target_id: uuid.UUID
    now_active: bool


class CountResponse(BaseModel):
    kind: RelationKind
    target_id: uuid.UUID
    count: int


class ActorsResponse(BaseModel):
    kind: RelationKind
    target_id: uuid.UUID
    actor_ids: list[uuid.UUID]


class TargetsResponse(BaseModel):
    kind: RelationKind
    actor_id: uuid.UUID
    target_ids: list[uuid.UUID]


# ──────────────────────────── Deactivation ────────────────────────────────

class DeactivationResponse(BaseModel):
    kind: str
    id: uuid.UUID
    deactivated: dict[str, int]
