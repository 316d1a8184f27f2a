"""
User / channel endpoints:
  POST   /users/register  — create an account (optional avatar + cover image)
  POST   /users/login     — verify credentials, set the session cookie
  POST   /users/logout    — clear the session cookie
  GET    /users/me        — the logged-in user
  GET    /users/{id}      — public channel profile
  DELETE /users/me        — deactivate the account (cascades, releases media)
"""
import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from opentelemetry import trace
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub import lifecycle
from mediahub.auth import (
    current_user,
    hash_password,
    issue_access_token,
    verify_password,
)
from mediahub.clients.minio_client import get_presigned_url, upload_media
from mediahub.config import settings
from mediahub.database import get_db
from mediahub.errors import Conflict, InvalidActor, NotFound
from mediahub.identifiers import as_entity_id
from mediahub.media_release import dispatch_media_release
from mediahub.models import User
from mediahub.schemas import (
    DeactivationResponse,
    LoginResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _build_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        avatar_url=get_presigned_url(user.avatar_key),
        cover_image_url=get_presigned_url(user.cover_image_key),
        subscriber_count=user.subscriber_count,
        created_at=user.created_at,
    )


async def _upload_optional(media_base64: str | None, prefix: str) -> str | None:
    if not media_base64:
        return None
    try:
        # boto3 is blocking
        return await asyncio.to_thread(upload_media, media_base64, "image", prefix)
    except Exception as exc:
        logger.warning("%s upload failed: %s", prefix, exc)
        return None


async def _username_or_email_taken(db: AsyncSession, username: str, email: str) -> bool:
    """Early answer for the common case; the unique indexes decide races."""
    existing = await db.execute(
        select(User.id).where(or_(User.username == username, User.email == email))
    )
    return existing.first() is not None


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(body: UserRegister, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("register_user"):
        username = body.username.strip().lower()
        email = body.email.strip().lower()

        if await _username_or_email_taken(db, username, email):
            raise Conflict("Username or email already registered")

        avatar_key = await _upload_optional(body.avatar_base64, "avatar")
        cover_image_key = await _upload_optional(body.cover_image_base64, "cover")
        user = User(
            username=username,
            email=email,
            full_name=body.full_name.strip(),
            password_hash=hash_password(body.password),
            avatar_key=avatar_key,
            cover_image_key=cover_image_key,
            subscriber_count=0,
            is_active=True,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration.
            await db.rollback()
            uploaded = [k for k in (avatar_key, cover_image_key) if k]
            if uploaded:
                await dispatch_media_release(uploaded)
            raise Conflict("Username or email already registered") from exc
        await db.refresh(user)  # load server-generated fields (created_at)

        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return _build_user_response(user)


@router.post("/login", response_model=LoginResponse)
async def login_user(body: UserLogin, response: Response, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(User).where(User.username == body.username.strip().lower())
    )
    user = result.scalar_one_or_none()
    if user is None or not user.is_active or not verify_password(body.password, user.password_hash):
        raise InvalidActor("Invalid username or password")

    token = issue_access_token(user.id)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.access_token_ttl,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return LoginResponse(user=_build_user_response(user), access_token=token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout_user(response: Response, user: User = Depends(current_user)):
    response.delete_cookie(settings.session_cookie_name)
    logger.debug("User %s logged out", user.id)


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(current_user)):
    return _build_user_response(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await db.get(User, as_entity_id(user_id))
    if user is None or not user.is_active:
        raise NotFound("User not found")
    return _build_user_response(user)


@router.delete("/me", response_model=DeactivationResponse)
async def deactivate_me(
    response: Response,
    background_tasks: BackgroundTasks,
    user: User = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await lifecycle.deactivate(db, user.id, lifecycle.EntityKind.USER, user.id)
    if result.media_handles:
        background_tasks.add_task(dispatch_media_release, result.media_handles)
    response.delete_cookie(settings.session_cookie_name)
    return DeactivationResponse(
        kind=result.kind.value, id=result.entity_id, deactivated=result.deactivated
    )
