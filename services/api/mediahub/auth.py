"""
Cookie/JWT session auth.

  hash_password / verify_password — bcrypt
  issue_access_token             — HS256 JWT, sub = user id
  current_actor                  — FastAPI dependency returning the
                                   canonical id of the logged-in user
"""
import logging
import time
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub.config import settings
from mediahub.database import get_db
from mediahub.errors import InvalidActor, InvalidTarget
from mediahub.identifiers import EntityId, as_entity_id
from mediahub.models import User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def issue_access_token(user_id: EntityId) -> str:
    now = int(time.time())
    payload = {"sub": str(user_id), "iat": now, "exp": now + settings.access_token_ttl}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> EntityId:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise InvalidActor("Access token expired") from None
    except jwt.PyJWTError:
        raise InvalidActor("Invalid access token") from None
    try:
        return as_entity_id(payload.get("sub", ""))
    except InvalidTarget:
        raise InvalidActor("Invalid access token") from None


def _token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


async def current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """Resolve the session to an active user or raise InvalidActor."""
    token = _token_from_request(request)
    if not token:
        raise InvalidActor()
    user_id = decode_access_token(token)
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise InvalidActor("Invalid access token")
    return user


async def current_actor(user: User = Depends(current_user)) -> EntityId:
    return as_entity_id(user.id)
