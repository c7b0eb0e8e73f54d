from __future__ import annotations
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from cards.db import get_session
from cards.auth_deps import get_current_actor, get_optional_actor
from cards.schemas.challenges import (
    ChallengeSubmissionCreate, ChallengeModeration, ProgressUpdate, ChallengeSubmissionList, ChallengeSubmissionPublic,
    ParticipationPublic, LikeResult, RemovalRequestCreate, RemovalReview, RemovalRequestPublic,
)
from cards.models.challenge import ChallengeParticipation
from cards.services import challenges as challenge_service
from cards.services.notifications import commit_and_dispatch

router = APIRouter(tags=["challenges"])

@router.post("/posts/{post_id}/join", response_model=ParticipationPublic, status_code=201)
async def join_challenge(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    part = await challenge_service.join(session, post_id, actor)
    await commit_and_dispatch(session)
    return part

@router.delete("/posts/{post_id}/join")
async def leave_challenge(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    await challenge_service.leave(session, post_id, actor)
    await commit_and_dispatch(session)
    return {"success": True, "message": "Left challenge"}

@router.patch("/posts/{post_id}/progress", response_model=ParticipationPublic)
async def update_progress(
    post_id: str,
    payload: ProgressUpdate,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    part = await challenge_service.update_progress(session, post_id, actor, payload.progress)
    await commit_and_dispatch(session)
    return part

@router.post("/posts/{post_id}/complete", response_model=ParticipationPublic)
async def mark_complete(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    part = await challenge_service.mark_complete(session, post_id, actor)
    await commit_and_dispatch(session)
    return part

@router.get("/posts/{post_id}/participants", response_model=list[ParticipationPublic])
async def list_participants(
    post_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    return await challenge_service.list_participants(session, post_id, limit, offset)

@router.post("/posts/{post_id}/challenge-submissions", response_model=ChallengeSubmissionPublic, status_code=201)
async def submit_proof(
    post_id: str,
    payload: ChallengeSubmissionCreate,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    sub = await challenge_service.submit_proof(session, post_id, actor, payload)
    part = await session.get(ChallengeParticipation, sub.participation_id)
    await commit_and_dispatch(session)
    return challenge_service.submission_public(sub, part, viewer=actor)

@router.get("/posts/{post_id}/challenge-submissions", response_model=ChallengeSubmissionList)
async def list_submissions(
    post_id: str,
    filter: str = Query(default="approved"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_optional_actor),
):
    return await challenge_service.list_submissions(session, post_id, actor, filter, limit, offset)

@router.patch("/challenge-submissions/{submission_id}/status", response_model=ChallengeSubmissionPublic)
async def moderate_submission(
    submission_id: str,
    payload: ChallengeModeration,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    sub = await challenge_service.moderate_submission(session, submission_id, actor, payload.status)
    part = await session.get(ChallengeParticipation, sub.participation_id)
    await commit_and_dispatch(session)
    return challenge_service.submission_public(sub, part, viewer=actor)

@router.patch("/challenge-submissions/{submission_id}/feature", response_model=ChallengeSubmissionPublic)
async def feature_submission(submission_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    sub = await challenge_service.feature_submission(session, submission_id, actor)
    part = await session.get(ChallengeParticipation, sub.participation_id)
    await commit_and_dispatch(session)
    return challenge_service.submission_public(sub, part, viewer=actor)

@router.post("/challenge-submissions/{submission_id}/like", response_model=LikeResult)
async def like_submission(submission_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    sub = await challenge_service.like_submission(session, submission_id, actor)
    await commit_and_dispatch(session)
    return LikeResult(liked=True, like_count=sub.like_count)

@router.delete("/challenge-submissions/{submission_id}/like", response_model=LikeResult)
async def unlike_submission(submission_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    sub = await challenge_service.unlike_submission(session, submission_id, actor)
    await commit_and_dispatch(session)
    return LikeResult(liked=False, like_count=sub.like_count)

@router.post("/challenge-submissions/{submission_id}/request-removal", response_model=RemovalRequestPublic, status_code=201)
async def request_removal(
    submission_id: str,
    payload: RemovalRequestCreate,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    req = await challenge_service.request_removal(session, submission_id, actor, payload.reason)
    await commit_and_dispatch(session)
    return req

@router.get("/posts/{post_id}/removal-requests", response_model=list[RemovalRequestPublic])
async def list_removal_requests(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    return await challenge_service.list_removal_requests(session, post_id, actor)

@router.patch("/submission-removal-requests/{request_id}", response_model=RemovalRequestPublic)
async def review_removal_request(
    request_id: str,
    payload: RemovalReview,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    req = await challenge_service.review_removal_request(session, request_id, actor, payload.status)
    await commit_and_dispatch(session)
    return req

@router.patch("/participants/{participation_id}/highlight", response_model=ParticipationPublic)
async def highlight_participant(participation_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    part = await challenge_service.highlight_participant(session, participation_id, actor)
    await commit_and_dispatch(session)
    return part
