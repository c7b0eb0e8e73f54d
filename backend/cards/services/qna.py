from __future__ import annotations
import uuid
from datetime import datetime
import structlog
from sqlalchemy import select, func, update, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from cards.auth_deps import Actor
from cards.db import utcnow
from cards.errors import AuthorizationDenied, Conflict, NotFound, ValidationError
from cards.models.post import Post
from cards.models.qna import QnAQuestion, QnAAnswer, QnAUpvote, QnAExpert
from cards.schemas.posts import QnACreate
from cards.schemas.qna import QuestionPublic, AnswerPublic, QuestionModeration, ExpertCreate
from cards.schemas.type_data import QnAData
from cards.services.card_state import has_ended
from cards.services.notifications import notify
from cards.services.store import (
    get_post_or_404, lock_post, read_type_data, write_type_data, require_community,
)

log = structlog.get_logger()


def _uuid(value, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFound(f"{what} not found")


def create_qna(actor: Actor, payload: QnACreate) -> Post:
    require_community(actor, "Q&A posts")
    title = (payload.title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    data = QnAData(
        title=title,
        description=(payload.description or "").strip(),
        allow_anonymous=payload.allow_anonymous,
        max_questions_per_user=payload.max_questions_per_user,
    )
    return Post(
        post_type="qna",
        author_id=actor.id,
        author_type=actor.type,
        caption=payload.caption,
        status="active",
        media_urls=list(payload.media_urls),
        expires_at=payload.expires_at,
        type_data=data.model_dump(mode="json"),
    )


def _require_host(post: Post, actor: Actor, action: str) -> None:
    if not actor.owns(post.author_id, post.author_type):
        raise AuthorizationDenied(f"Only the Q&A host can {action}")


async def submit_question(
    session: AsyncSession,
    post_id,
    actor: Actor,
    content: str,
    is_anonymous: bool = False,
    now: datetime | None = None,
) -> QnAQuestion:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Question content is required")
    post = await lock_post(session, post_id, "qna")
    if has_ended(post.expires_at, now):
        raise ValidationError("This Q&A session has ended")

    data = read_type_data(post, QnAData)
    asked = await session.scalar(
        select(func.count()).select_from(QnAQuestion).where(
            QnAQuestion.post_id == post.id,
            QnAQuestion.author_id == actor.id,
            QnAQuestion.author_type == actor.type,
        )
    )
    if int(asked or 0) >= data.max_questions_per_user:
        raise ValidationError(f"You can only ask {data.max_questions_per_user} question(s) per Q&A")

    question = QnAQuestion(
        id=uuid.uuid4(),
        post_id=post.id,
        author_id=actor.id,
        author_type=actor.type,
        content=content,
        is_anonymous=bool(is_anonymous and data.allow_anonymous),
        is_pinned=False,
        is_locked=False,
        is_hidden=False,
        upvote_count=0,
    )
    session.add(question)
    data.question_count += 1
    write_type_data(post, data)

    if not actor.owns(post.author_id, post.author_type):
        notify(
            session, post.author_id, post.author_type,
            "New question in your Q&A",
            "Someone asked a question" if question.is_anonymous else "A participant asked a question",
            {"type": "qna_question", "post_id": str(post.id), "question_id": str(question.id)},
        )
    await session.flush()
    log.info("qna.question_submitted", post_id=str(post.id), question_id=str(question.id), anonymous=question.is_anonymous)
    return question


def question_public(q: QnAQuestion, answers: list[QnAAnswer], has_upvoted: bool = False) -> QuestionPublic:
    return QuestionPublic(
        id=q.id,
        post_id=q.post_id,
        author_id=None if q.is_anonymous else q.author_id,
        author_type=None if q.is_anonymous else q.author_type,
        content=q.content,
        is_anonymous=q.is_anonymous,
        is_pinned=q.is_pinned,
        is_locked=q.is_locked,
        is_hidden=q.is_hidden,
        upvote_count=q.upvote_count,
        has_upvoted=has_upvoted,
        is_answered=q.answered_at is not None or bool(answers),
        answered_at=q.answered_at,
        resolved_at=q.resolved_at,
        best_answer_id=q.best_answer_id,
        answers=[AnswerPublic.model_validate(a) for a in answers],
        created_at=q.created_at,
    )


async def list_questions(
    session: AsyncSession,
    post_id,
    viewer: Actor | None,
    sort: str = "top",
    filter: str = "all",
    limit: int = 20,
    offset: int = 0,
) -> list[QuestionPublic]:
    post = await get_post_or_404(session, post_id, "qna")
    q = select(QnAQuestion).where(QnAQuestion.post_id == post.id)
    if viewer is None:
        q = q.where(QnAQuestion.is_hidden.is_(False))
    elif not viewer.owns(post.author_id, post.author_type):
        q = q.where(or_(
            QnAQuestion.is_hidden.is_(False),
            and_(QnAQuestion.author_id == viewer.id, QnAQuestion.author_type == viewer.type),
        ))
    if filter == "answered":
        q = q.where(QnAQuestion.answered_at.is_not(None))
    elif filter == "unanswered":
        q = q.where(QnAQuestion.answered_at.is_(None))

    order = [QnAQuestion.is_pinned.desc()]
    if sort == "recent":
        order.append(QnAQuestion.created_at.desc())
    else:
        order += [QnAQuestion.upvote_count.desc(), QnAQuestion.created_at.desc()]
    questions = (await session.execute(q.order_by(*order).limit(limit).offset(offset))).scalars().all()
    if not questions:
        return []

    ids = [x.id for x in questions]
    answers: dict = {}
    for a in (await session.execute(
        select(QnAAnswer).where(QnAAnswer.question_id.in_(ids))
        .order_by(QnAAnswer.is_best_answer.desc(), QnAAnswer.created_at.asc())
    )).scalars().all():
        answers.setdefault(a.question_id, []).append(a)

    upvoted: set = set()
    if viewer is not None:
        upvoted = set((await session.execute(
            select(QnAUpvote.question_id).where(
                QnAUpvote.question_id.in_(ids),
                QnAUpvote.voter_id == viewer.id,
                QnAUpvote.voter_type == viewer.type,
            )
        )).scalars().all())
    return [question_public(x, answers.get(x.id, []), x.id in upvoted) for x in questions]


async def _question(session: AsyncSession, question_id, lock: bool = False) -> QnAQuestion:
    question = await session.get(QnAQuestion, _uuid(question_id, "Question"), with_for_update=lock)
    if question is None:
        raise NotFound("Question not found")
    return question


async def upvote(session: AsyncSession, question_id, actor: Actor) -> QnAQuestion:
    question = await _question(session, question_id, lock=True)
    if question.is_locked:
        raise ValidationError("This question is locked")
    existing = await session.scalar(
        select(QnAUpvote.id).where(
            QnAUpvote.question_id == question.id,
            QnAUpvote.voter_id == actor.id,
            QnAUpvote.voter_type == actor.type,
        )
    )
    if existing:
        raise Conflict("Already upvoted")
    session.add(QnAUpvote(question_id=question.id, voter_id=actor.id, voter_type=actor.type))
    question.upvote_count = int(question.upvote_count or 0) + 1
    await session.flush()
    return question


async def remove_upvote(session: AsyncSession, question_id, actor: Actor) -> QnAQuestion:
    question = await _question(session, question_id, lock=True)
    vote = await session.scalar(
        select(QnAUpvote).where(
            QnAUpvote.question_id == question.id,
            QnAUpvote.voter_id == actor.id,
            QnAUpvote.voter_type == actor.type,
        )
    )
    if vote is None:
        raise ValidationError("Not upvoted")
    await session.delete(vote)
    question.upvote_count = max(0, int(question.upvote_count or 0) - 1)
    await session.flush()
    return question


async def answer_question(session: AsyncSession, question_id, actor: Actor, content: str) -> QnAAnswer:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Answer content is required")
    question = await _question(session, question_id)
    post = await lock_post(session, question.post_id, "qna")
    if not actor.owns(post.author_id, post.author_type) and not await is_expert(session, post.id, actor):
        raise AuthorizationDenied("Only the Q&A host or designated experts can answer")
    if question.is_locked:
        raise ValidationError("This question is locked")

    answer = QnAAnswer(
        id=uuid.uuid4(),
        question_id=question.id,
        author_id=actor.id,
        author_type=actor.type,
        content=content,
        is_best_answer=False,
    )
    session.add(answer)
    if question.answered_at is None:
        question.answered_at = utcnow()
        data = read_type_data(post, QnAData)
        data.answered_count += 1
        write_type_data(post, data)

    if not actor.owns(question.author_id, question.author_type):
        notify(
            session, question.author_id, question.author_type,
            "Your question was answered!",
            "Your question has a new answer",
            {"type": "qna_answered", "post_id": str(post.id), "question_id": str(question.id), "answer_id": str(answer.id)},
        )
    await session.flush()
    log.info("qna.question_answered", question_id=str(question.id), answer_id=str(answer.id))
    return answer


async def _set_best_answer(session: AsyncSession, question: QnAQuestion, answer: QnAAnswer) -> None:
    await session.execute(
        update(QnAAnswer)
        .where(QnAAnswer.question_id == question.id, QnAAnswer.id != answer.id)
        .values(is_best_answer=False)
    )
    answer.is_best_answer = True
    question.best_answer_id = answer.id


async def mark_best_answer(session: AsyncSession, answer_id, actor: Actor) -> QnAAnswer:
    answer = await session.get(QnAAnswer, _uuid(answer_id, "Answer"))
    if answer is None:
        raise NotFound("Answer not found")
    question = await _question(session, answer.question_id, lock=True)
    post = await get_post_or_404(session, question.post_id, "qna")
    _require_host(post, actor, "mark best answers")
    await _set_best_answer(session, question, answer)
    await session.flush()
    log.info("qna.best_answer_marked", question_id=str(question.id), answer_id=str(answer.id))
    return answer


async def resolve_question(session: AsyncSession, post_id, actor: Actor, question_id, best_answer_id=None) -> QnAQuestion:
    post = await get_post_or_404(session, post_id, "qna")
    _require_host(post, actor, "resolve questions")
    question = await _question(session, question_id, lock=True)
    if question.post_id != post.id:
        raise NotFound("Question not found")

    if best_answer_id is not None:
        answer = await session.get(QnAAnswer, _uuid(best_answer_id, "Answer"))
        if answer is None or answer.question_id != question.id:
            raise ValidationError("Best answer must belong to the question")
        await _set_best_answer(session, question, answer)
    question.resolved_at = utcnow()
    question.resolved_by = actor.id
    await session.flush()
    log.info("qna.question_resolved", question_id=str(question.id), best_answer_id=str(best_answer_id) if best_answer_id else None)
    return question


async def moderate_question(session: AsyncSession, question_id, actor: Actor, changes: QuestionModeration) -> QnAQuestion:
    question = await _question(session, question_id, lock=True)
    post = await get_post_or_404(session, question.post_id, "qna")
    _require_host(post, actor, "moderate questions")
    updates = changes.model_dump(exclude_none=True)
    if not updates:
        raise ValidationError("No updates provided")
    for field, value in updates.items():
        setattr(question, field, value)
    await session.flush()
    log.info("qna.question_moderated", question_id=str(question.id), **updates)
    return question


async def answers_for(session: AsyncSession, question_id) -> list[QnAAnswer]:
    return list((await session.execute(
        select(QnAAnswer).where(QnAAnswer.question_id == question_id)
        .order_by(QnAAnswer.is_best_answer.desc(), QnAAnswer.created_at.asc())
    )).scalars().all())


async def is_expert(session: AsyncSession, post_id, actor: Actor) -> bool:
    found = await session.scalar(
        select(QnAExpert.id).where(
            QnAExpert.post_id == post_id,
            QnAExpert.expert_id == actor.id,
            QnAExpert.expert_type == actor.type,
        )
    )
    return found is not None


async def add_expert(session: AsyncSession, post_id, actor: Actor, payload: ExpertCreate) -> QnAExpert:
    post = await get_post_or_404(session, post_id, "qna")
    _require_host(post, actor, "add experts")
    expert = Actor(payload.expert_id, payload.expert_type)
    if await is_expert(session, post.id, expert):
        raise Conflict("Expert already added")

    row = QnAExpert(
        id=uuid.uuid4(),
        post_id=post.id,
        expert_id=expert.id,
        expert_type=expert.type,
        added_by_id=actor.id,
        added_by_type=actor.type,
    )
    session.add(row)
    if not actor.owns(expert.id, expert.type):
        notify(
            session, expert.id, expert.type,
            "You're a Q&A expert",
            "You were invited to answer questions in a Q&A",
            {"type": "qna_expert_added", "post_id": str(post.id)},
        )
    await session.flush()
    log.info("qna.expert_added", post_id=str(post.id), expert_id=expert.id, expert_type=expert.type)
    return row


async def remove_expert(session: AsyncSession, post_id, actor: Actor, expert_id: int, expert_type: str = "member") -> None:
    post = await get_post_or_404(session, post_id, "qna")
    _require_host(post, actor, "remove experts")
    row = await session.scalar(
        select(QnAExpert).where(
            QnAExpert.post_id == post.id,
            QnAExpert.expert_id == expert_id,
            QnAExpert.expert_type == expert_type,
        )
    )
    if row is None:
        raise NotFound("Expert not found")
    await session.delete(row)
    await session.flush()
    log.info("qna.expert_removed", post_id=str(post.id), expert_id=expert_id, expert_type=expert_type)


async def list_experts(session: AsyncSession, post_id) -> list[QnAExpert]:
    post = await get_post_or_404(session, post_id, "qna")
    return list((await session.execute(
        select(QnAExpert).where(QnAExpert.post_id == post.id).order_by(QnAExpert.created_at.asc())
    )).scalars().all())
