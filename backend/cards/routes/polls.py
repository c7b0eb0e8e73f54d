from __future__ import annotations
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from cards.db import get_session
from cards.auth_deps import get_current_actor, get_optional_actor
from cards.schemas.polls import VoteRequest, VoteResult, PollResults, VoteStatus
from cards.services import polls as poll_service
from cards.services.notifications import commit_and_dispatch

router = APIRouter(prefix="/posts", tags=["polls"])

@router.post("/{post_id}/vote", response_model=VoteResult)
async def vote(
    post_id: str,
    payload: VoteRequest,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    result = await poll_service.vote(session, post_id, actor, payload.indexes())
    await commit_and_dispatch(session)
    return result

@router.delete("/{post_id}/vote", response_model=VoteResult)
async def remove_vote(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    result = await poll_service.remove_vote(session, post_id, actor)
    await commit_and_dispatch(session)
    return result

@router.get("/{post_id}/results", response_model=PollResults)
async def results(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_optional_actor)):
    return await poll_service.get_results(session, post_id, actor)

@router.get("/{post_id}/vote-status", response_model=VoteStatus)
async def vote_status(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    return await poll_service.vote_status(session, post_id, actor)
