"""Pytest fixtures for the mediahub API tests.

The suite runs against an on-disk SQLite database (aiosqlite) so the
relations table's uniqueness constraint is enforced by a real engine.
Settings are read at import time, so the environment is prepared before
anything from mediahub is imported.
"""
import os
import tempfile
from pathlib import Path

_DB_DIR = Path(tempfile.mkdtemp(prefix="mediahub-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'mediahub.db'}"
os.environ["OTEL_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"

import itertools  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from mediahub import ledger  # noqa: E402
from mediahub.auth import issue_access_token  # noqa: E402
from mediahub.database import AsyncSessionLocal, Base, engine  # noqa: E402
from mediahub.models import (  # noqa: E402
    Comment,
    Playlist,
    Relation,
    RelationKind,
    Tweet,
    User,
    Video,
)

_seq = itertools.count(1)


@pytest.fixture
async def db_schema():
    """Fresh tables for every test; pooled connections closed afterwards."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def db(db_schema):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def client(db_schema):
    from mediahub.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _persist(entity):
    async with AsyncSessionLocal() as session:
        session.add(entity)
        await session.commit()
    return entity


@pytest.fixture
def make_user(db_schema):
    async def _make(**fields) -> User:
        n = next(_seq)
        values = {
            "username": f"user{n}",
            "email": f"user{n}@example.com",
            "full_name": f"User {n}",
            "password_hash": "not-a-real-hash",
            "subscriber_count": 0,
            "is_active": True,
        }
        values.update(fields)
        return await _persist(User(**values))

    return _make


@pytest.fixture
def make_video(db_schema):
    async def _make(owner: User, **fields) -> Video:
        n = next(_seq)
        values = {
            "owner_id": owner.id,
            "title": f"Video {n}",
            "description": "test video",
            "video_key": f"video/{n}.mp4",
            "thumbnail_key": f"thumbnail/{n}.jpg",
            "views": 0,
            "is_published": True,
            "like_count": 0,
            "is_active": True,
        }
        values.update(fields)
        return await _persist(Video(**values))

    return _make


@pytest.fixture
def make_comment(db_schema):
    async def _make(video: Video, owner: User, **fields) -> Comment:
        values = {
            "video_id": video.id,
            "owner_id": owner.id,
            "content": "nice",
            "like_count": 0,
            "is_active": True,
        }
        values.update(fields)
        return await _persist(Comment(**values))

    return _make


@pytest.fixture
def make_tweet(db_schema):
    async def _make(owner: User, **fields) -> Tweet:
        values = {"owner_id": owner.id, "content": "hello", "like_count": 0, "is_active": True}
        values.update(fields)
        return await _persist(Tweet(**values))

    return _make


@pytest.fixture
def make_playlist(db_schema):
    async def _make(owner: User, **fields) -> Playlist:
        values = {"owner_id": owner.id, "name": "favourites", "is_active": True}
        values.update(fields)
        return await _persist(Playlist(**values))

    return _make


async def counter(kind: RelationKind, target_id) -> int:
    """Ledger value read through a fresh session."""
    async with AsyncSessionLocal() as session:
        return await ledger.read(session, kind, target_id)


async def relation_rows(kind: RelationKind, target_id) -> int:
    from sqlalchemy import func, select

    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(func.count())
            .select_from(Relation)
            .where(Relation.kind == kind, Relation.target_id == target_id)
        )
        return int(result.scalar_one())


async def is_active(model, entity_id) -> bool:
    from sqlalchemy import select

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(model.is_active).where(model.id == entity_id))
        return bool(result.scalar_one())


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_access_token(user.id)}"}


@pytest.fixture
def helpers():
    """Plain helper functions, exposed as a fixture so tests need no imports from conftest."""

    class _Helpers:
        pass

    h = _Helpers()
    h.counter = counter
    h.relation_rows = relation_rows
    h.is_active = is_active
    h.auth_headers = auth_headers
    return h
