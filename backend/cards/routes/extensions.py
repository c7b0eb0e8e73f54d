from __future__ import annotations
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from cards.db import get_session
from cards.auth_deps import get_current_actor
from cards.schemas.extensions import (
    ExtendRequest, ExtendResult, CanExtendResult, ExtensionHistory, ExtensionPublic, CloseResult,
)
from cards.services import extensions as extension_service
from cards.services.card_state import can_extend
from cards.services.notifications import commit_and_dispatch
from cards.services.store import get_post_or_404

router = APIRouter(prefix="/posts", tags=["extensions"])

@router.post("/{post_id}/extend", response_model=ExtendResult)
async def extend_card(
    post_id: str,
    payload: ExtendRequest,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    post = await extension_service.extend(session, post_id, actor, payload.new_end_time, payload.reason)
    await commit_and_dispatch(session)
    return ExtendResult(new_end_time=post.expires_at, extension_count=post.extension_count)

@router.get("/{post_id}/extensions", response_model=ExtensionHistory)
async def extension_history(post_id: str, session: AsyncSession = Depends(get_session)):
    rows = await extension_service.extension_history(session, post_id)
    return ExtensionHistory(extensions=[ExtensionPublic.model_validate(r) for r in rows], count=len(rows))

@router.get("/{post_id}/can-extend", response_model=CanExtendResult)
async def can_extend_card(post_id: str, session: AsyncSession = Depends(get_session)):
    post = await get_post_or_404(session, post_id)
    decision = can_extend(post.post_type, post.expires_at, post.extension_count)
    return CanExtendResult(
        allowed=decision.allowed,
        reason=decision.reason,
        extension_count=post.extension_count or 0,
        max_extensions=extension_service.max_extensions(post.post_type),
    )

@router.post("/{post_id}/close", response_model=CloseResult)
async def close_opportunity(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    post = await extension_service.close_opportunity(session, post_id, actor)
    await commit_and_dispatch(session)
    return CloseResult(closed_at=post.closed_at, closure_type=post.closure_type)
