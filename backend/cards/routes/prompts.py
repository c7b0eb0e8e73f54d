from __future__ import annotations
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from cards.db import get_session
from cards.auth_deps import get_current_actor, get_optional_actor
from cards.schemas.prompts import (
    PromptSubmissionCreate, PromptModeration, PromptSubmissionPublic, PromptReplyCreate, PromptReplyPublic,
)
from cards.services import prompts as prompt_service
from cards.services.notifications import commit_and_dispatch

router = APIRouter(tags=["prompts"])

@router.post("/posts/{post_id}/submissions", response_model=PromptSubmissionPublic, status_code=201)
async def submit_response(
    post_id: str,
    payload: PromptSubmissionCreate,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    sub = await prompt_service.submit(session, post_id, actor, payload)
    await commit_and_dispatch(session)
    return sub

@router.get("/posts/{post_id}/submissions", response_model=list[PromptSubmissionPublic])
async def list_submissions(
    post_id: str,
    status: str = Query(default="approved"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_optional_actor),
):
    return await prompt_service.list_submissions(session, post_id, actor, status, limit, offset)

@router.get("/posts/{post_id}/my-submission", response_model=PromptSubmissionPublic | None)
async def my_submission(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    return await prompt_service.my_submission(session, post_id, actor)

@router.patch("/submissions/{submission_id}/status", response_model=PromptSubmissionPublic)
async def moderate_submission(
    submission_id: str,
    payload: PromptModeration,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    sub = await prompt_service.moderate(session, submission_id, actor, payload.status)
    await commit_and_dispatch(session)
    return sub

@router.patch("/submissions/{submission_id}/pin", response_model=PromptSubmissionPublic)
async def pin_submission(submission_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    sub = await prompt_service.pin_submission(session, submission_id, actor)
    await commit_and_dispatch(session)
    return sub

@router.post("/submissions/{submission_id}/replies", response_model=PromptReplyPublic, status_code=201)
async def create_reply(
    submission_id: str,
    payload: PromptReplyCreate,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    reply = await prompt_service.create_reply(session, submission_id, actor, payload)
    await commit_and_dispatch(session)
    return reply

@router.get("/submissions/{submission_id}/replies", response_model=list[PromptReplyPublic])
async def list_replies(
    submission_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_optional_actor),
):
    return await prompt_service.list_replies(session, submission_id, actor, limit, offset)

@router.patch("/replies/{reply_id}/hide", response_model=PromptReplyPublic)
async def hide_reply(reply_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    reply = await prompt_service.hide_reply(session, reply_id, actor)
    await commit_and_dispatch(session)
    return reply
