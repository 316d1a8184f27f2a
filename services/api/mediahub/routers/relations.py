"""
Relation endpoints (kind ∈ video_like | comment_like | tweet_like | subscription):
  POST /relations/{kind}/{target_id}         — toggle → {now_active}
  GET  /relations/{kind}/{target_id}/count   — counter ledger value
  GET  /relations/{kind}/{target_id}/actors  — who holds the relation
  GET  /relations/{kind}                     — targets the caller holds it on
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub import ledger, relation_store
from mediahub.auth import current_actor
from mediahub.database import get_db
from mediahub.identifiers import EntityId, as_entity_id
from mediahub.schemas import ActorsResponse, CountResponse, TargetsResponse, ToggleResponse
from mediahub.toggle import parse_kind, toggle

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{kind}/{target_id}", response_model=ToggleResponse)
async def toggle_relation(
    kind: str,
    target_id: str,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await toggle(db, actor, kind, target_id)
    return ToggleResponse(
        kind=result.kind, target_id=result.target_id, now_active=result.now_active
    )


@router.get("/{kind}/{target_id}/count", response_model=CountResponse)
async def relation_count(kind: str, target_id: str, db: AsyncSession = Depends(get_db)):
    relation_kind = parse_kind(kind)
    target = as_entity_id(target_id)
    count = await ledger.read(db, relation_kind, target)
    return CountResponse(kind=relation_kind, target_id=target, count=count)


@router.get("/{kind}/{target_id}/actors", response_model=ActorsResponse)
async def relation_actors(
    kind: str,
    target_id: str,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    relation_kind = parse_kind(kind)
    target = as_entity_id(target_id)
    actor_ids = await relation_store.list_actors(db, relation_kind, target, limit, offset)
    return ActorsResponse(kind=relation_kind, target_id=target, actor_ids=actor_ids)


@router.get("/{kind}", response_model=TargetsResponse)
async def my_relation_targets(
    kind: str,
    actor: EntityId = Depends(current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Liked videos, subscribed channels, … — inactive targets left out."""
    relation_kind = parse_kind(kind)
    target_ids = await relation_store.list_targets(db, actor, relation_kind)
    if target_ids:
        model = ledger.target_model(relation_kind)
        rows = await db.execute(
            select(model.id).where(model.id.in_(target_ids), model.is_active.is_(True))
        )
        active = set(rows.scalars().all())
        target_ids = [t for t in target_ids if t in active]
    return TargetsResponse(kind=relation_kind, actor_id=actor, target_ids=target_ids)
