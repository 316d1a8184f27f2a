"""
Tweet endpoints:
  POST   /tweets              — create a tweet
  GET    /tweets/user/{id}    — active tweets of a user
  PATCH  /tweets/{id}         — edit (owner)
  DELETE /tweets/{id}         — deactivate (owner)
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub import lifecycle
from mediahub.auth import current_actor
from mediahub.database import get_db
from mediahub.identifiers import EntityId, as_entity_id
from mediahub.models import Tweet
from mediahub.ownership import load_owned
from mediahub.schemas import DeactivationResponse, TweetCreate, TweetResponse, TweetUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=TweetResponse, status_code=status.HTTP_201_CREATED)
async def create_tweet(
    body: TweetCreate,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    tweet = Tweet(owner_id=actor, content=body.content, like_count=0, is_active=True)
    db.add(tweet)
    await db.flush()
    await db.refresh(tweet)
    logger.info("Tweet %s created by %s", tweet.id, actor)
    return tweet


@router.get("/user/{user_id}", response_model=list[TweetResponse])
async def list_user_tweets(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Tweet)
        .where(Tweet.owner_id == as_entity_id(user_id), Tweet.is_active.is_(True))
        .order_by(Tweet.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return rows.scalars().all()


@router.patch("/{tweet_id}", response_model=TweetResponse)
async def update_tweet(
    tweet_id: str,
    body: TweetUpdate,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    tweet = await load_owned(db, Tweet, tweet_id, actor)
    tweet.content = body.content
    await db.flush()
    return tweet


@router.delete("/{tweet_id}", response_model=DeactivationResponse)
async def delete_tweet(
    tweet_id: str,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await lifecycle.deactivate(db, actor, lifecycle.EntityKind.TWEET, tweet_id)
    return DeactivationResponse(
        kind=result.kind.value, id=result.entity_id, deactivated=result.deactivated
    )
