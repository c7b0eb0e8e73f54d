from __future__ import annotations
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from cards.db import get_session
from cards.auth_deps import get_current_actor, get_optional_actor
from cards.schemas.qna import (
    QuestionCreate, AnswerCreate, QuestionModeration, ResolveRequest, QuestionPublic, AnswerPublic,
    UpvoteResult, QuestionSort, QuestionFilter, ExpertCreate, ExpertPublic,
)
from cards.services import qna as qna_service
from cards.services.notifications import commit_and_dispatch

router = APIRouter(tags=["qna"])

@router.post("/posts/{post_id}/questions", response_model=QuestionPublic, status_code=201)
async def submit_question(
    post_id: str,
    payload: QuestionCreate,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    question = await qna_service.submit_question(session, post_id, actor, payload.content, payload.is_anonymous)
    await commit_and_dispatch(session)
    return qna_service.question_public(question, [])

@router.get("/posts/{post_id}/questions", response_model=list[QuestionPublic])
async def list_questions(
    post_id: str,
    sort: QuestionSort = Query(default="top"),
    filter: QuestionFilter = Query(default="all"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_optional_actor),
):
    return await qna_service.list_questions(session, post_id, actor, sort, filter, limit, offset)

@router.post("/questions/{question_id}/upvote", response_model=UpvoteResult)
async def upvote_question(question_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    question = await qna_service.upvote(session, question_id, actor)
    await commit_and_dispatch(session)
    return UpvoteResult(upvoted=True, upvote_count=question.upvote_count)

@router.delete("/questions/{question_id}/upvote", response_model=UpvoteResult)
async def remove_upvote(question_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    question = await qna_service.remove_upvote(session, question_id, actor)
    await commit_and_dispatch(session)
    return UpvoteResult(upvoted=False, upvote_count=question.upvote_count)

@router.post("/questions/{question_id}/answer", response_model=AnswerPublic, status_code=201)
async def answer_question(
    question_id: str,
    payload: AnswerCreate,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    answer = await qna_service.answer_question(session, question_id, actor, payload.content)
    await commit_and_dispatch(session)
    return answer

@router.patch("/questions/{question_id}", response_model=QuestionPublic)
async def moderate_question(
    question_id: str,
    payload: QuestionModeration,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    question = await qna_service.moderate_question(session, question_id, actor, payload)
    answers = await qna_service.answers_for(session, question.id)
    await commit_and_dispatch(session)
    return qna_service.question_public(question, answers)

@router.patch("/answers/{answer_id}/best", response_model=AnswerPublic)
async def mark_best_answer(answer_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    answer = await qna_service.mark_best_answer(session, answer_id, actor)
    await commit_and_dispatch(session)
    return answer

@router.post("/posts/{post_id}/resolve", response_model=QuestionPublic)
async def resolve_question(
    post_id: str,
    payload: ResolveRequest,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    question = await qna_service.resolve_question(session, post_id, actor, payload.question_id, payload.best_answer_id)
    answers = await qna_service.answers_for(session, question.id)
    await commit_and_dispatch(session)
    return qna_service.question_public(question, answers)

@router.post("/posts/{post_id}/experts", response_model=ExpertPublic, status_code=201)
async def add_expert(
    post_id: str,
    payload: ExpertCreate,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    expert = await qna_service.add_expert(session, post_id, actor, payload)
    await commit_and_dispatch(session)
    return expert

@router.delete("/posts/{post_id}/experts/{expert_id}")
async def remove_expert(
    post_id: str,
    expert_id: int,
    expert_type: str = Query(default="member"),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    await qna_service.remove_expert(session, post_id, actor, expert_id, expert_type)
    await commit_and_dispatch(session)
    return {"success": True, "message": "Expert removed"}

@router.get("/posts/{post_id}/experts", response_model=list[ExpertPublic])
async def list_experts(post_id: str, session: AsyncSession = Depends(get_session)):
    return await qna_service.list_experts(session, post_id)
