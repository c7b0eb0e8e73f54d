from __future__ import annotations
import uuid
from datetime import datetime
import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cards.auth_deps import Actor
from cards.db import utcnow
from cards.errors import AuthorizationDenied, Conflict, NotFound, ValidationError
from cards.models.post import Post
from cards.models.prompt import PromptSubmission, PromptReply
from cards.schemas.posts import PromptCreate
from cards.schemas.prompts import PromptSubmissionCreate, PromptReplyCreate
from cards.schemas.type_data import PromptData
from cards.services.card_state import has_ended
from cards.services.notifications import notify
from cards.services.store import (
    get_post_or_404, lock_post, read_type_data, write_type_data, require_community,
)

log = structlog.get_logger()

VISIBLE_TO_PUBLIC = ("approved", "featured")


def create_prompt(actor: Actor, payload: PromptCreate) -> Post:
    require_community(actor, "prompts")
    text = (payload.prompt_text or "").strip()
    if not text:
        raise ValidationError("Prompt text is required")
    data = PromptData(
        prompt_text=text,
        submission_type=payload.submission_type,
        max_length=payload.max_length,
        require_approval=payload.require_approval,
    )
    return Post(
        post_type="prompt",
        author_id=actor.id,
        author_type=actor.type,
        caption=payload.caption,
        status="active",
        media_urls=[],
        expires_at=payload.expires_at,
        type_data=data.model_dump(mode="json"),
    )


async def submit(
    session: AsyncSession,
    post_id,
    actor: Actor,
    payload: PromptSubmissionCreate,
    now: datetime | None = None,
) -> PromptSubmission:
    post = await lock_post(session, post_id)
    if post.post_type != "prompt":
        raise ValidationError("This post is not a prompt")
    if post.status != "active":
        raise ValidationError("This prompt is no longer accepting submissions")
    if has_ended(post.expires_at, now):
        raise ValidationError("This prompt has expired")

    data = read_type_data(post, PromptData)
    content = (payload.content or "").strip() or None
    if data.submission_type == "text":
        if not content:
            raise ValidationError("Submission content is required")
        if len(content) > data.max_length:
            raise ValidationError(f"Submission exceeds max length of {data.max_length} characters")
    elif not payload.media_urls:
        raise ValidationError("Media is required for this prompt")

    existing = await session.scalar(
        select(PromptSubmission.id).where(
            PromptSubmission.post_id == post.id,
            PromptSubmission.author_id == actor.id,
            PromptSubmission.author_type == actor.type,
        )
    )
    if existing:
        raise Conflict("You have already submitted to this prompt")

    is_author = actor.owns(post.author_id, post.author_type)
    status = "approved" if (not data.require_approval or is_author) else "pending"
    sub = PromptSubmission(
        id=uuid.uuid4(),
        post_id=post.id,
        author_id=actor.id,
        author_type=actor.type,
        content=content,
        media_urls=list(payload.media_urls) or None,
        status=status,
        is_pinned=False,
    )
    session.add(sub)

    data.submission_count += 1
    write_type_data(post, data)

    if data.require_approval and not is_author:
        notify(
            session, post.author_id, post.author_type,
            "New prompt response",
            "Someone submitted a response to your prompt",
            {"type": "prompt_submission", "post_id": str(post.id), "submission_id": str(sub.id)},
        )
    await session.flush()
    log.info("prompt.submission_created", post_id=str(post.id), submission_id=str(sub.id), status=status)
    return sub


def _uuid(value, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFound(f"{what} not found")


async def _submission_with_prompt(session: AsyncSession, submission_id) -> tuple[PromptSubmission, Post]:
    sub = await session.get(PromptSubmission, _uuid(submission_id, "Submission"))
    if sub is None:
        raise NotFound("Submission not found")
    post = await lock_post(session, sub.post_id, "prompt")
    return sub, post


async def moderate(session: AsyncSession, submission_id, actor: Actor, new_status: str) -> PromptSubmission:
    """Approve, reject or feature a submission. Only the prompt's author may moderate."""
    if new_status not in ("approved", "rejected", "featured"):
        raise ValidationError("Status must be 'approved', 'rejected' or 'featured'")
    sub, post = await _submission_with_prompt(session, submission_id)
    if not actor.owns(post.author_id, post.author_type):
        raise AuthorizationDenied("Only the prompt author can moderate submissions")

    sub.status = new_status
    sub.moderated_by = actor.id
    sub.moderated_at = utcnow()
    if new_status == "rejected":
        sub.is_pinned = False

    if new_status == "featured":
        data = read_type_data(post, PromptData)
        if str(sub.id) not in data.featured_submission_ids:
            data.featured_submission_ids.append(str(sub.id))
            write_type_data(post, data)

    if new_status in ("approved", "featured"):
        title = "Your response was featured!" if new_status == "featured" else "Your response was approved"
        notify(
            session, sub.author_id, sub.author_type,
            title,
            "Your prompt response is now visible",
            {"type": "prompt_moderation", "post_id": str(post.id), "submission_id": str(sub.id), "status": new_status},
        )
    await session.flush()
    log.info("prompt.submission_moderated", submission_id=str(sub.id), status=new_status, moderator_id=actor.id)
    return sub


async def list_submissions(
    session: AsyncSession,
    post_id,
    viewer: Actor | None,
    status: str = "approved",
    limit: int = 20,
    offset: int = 0,
) -> list[PromptSubmission]:
    post = await get_post_or_404(session, post_id, "prompt")
    q = select(PromptSubmission).where(PromptSubmission.post_id == post.id)
    if viewer is not None and viewer.owns(post.author_id, post.author_type):
        if status != "all":
            q = q.where(PromptSubmission.status == status)
    else:
        q = q.where(PromptSubmission.status.in_(VISIBLE_TO_PUBLIC))
    q = q.order_by(PromptSubmission.is_pinned.desc(), PromptSubmission.created_at.desc()).limit(limit).offset(offset)
    return list((await session.execute(q)).scalars().all())


async def my_submission(session: AsyncSession, post_id, actor: Actor) -> PromptSubmission | None:
    post = await get_post_or_404(session, post_id, "prompt")
    return await session.scalar(
        select(PromptSubmission).where(
            PromptSubmission.post_id == post.id,
            PromptSubmission.author_id == actor.id,
            PromptSubmission.author_type == actor.type,
        )
    )


async def pin_submission(session: AsyncSession, submission_id, actor: Actor) -> PromptSubmission:
    """Toggle the pin on a submission; pinning one unpins any other on the same prompt."""
    sub, post = await _submission_with_prompt(session, submission_id)
    if not actor.owns(post.author_id, post.author_type):
        raise AuthorizationDenied("Only the prompt author can pin submissions")
    if not sub.is_pinned and sub.status not in VISIBLE_TO_PUBLIC:
        raise ValidationError("Only approved submissions can be pinned")

    if sub.is_pinned:
        sub.is_pinned = False
    else:
        await session.execute(
            update(PromptSubmission)
            .where(PromptSubmission.post_id == post.id, PromptSubmission.id != sub.id)
            .values(is_pinned=False)
        )
        sub.is_pinned = True
    await session.flush()
    log.info("prompt.submission_pinned", submission_id=str(sub.id), pinned=sub.is_pinned)
    return sub


async def create_reply(session: AsyncSession, submission_id, actor: Actor, payload: PromptReplyCreate) -> PromptReply:
    """Reply to a visible submission, or to another reply on it.

    The reply counter lives on whatever was replied to: the parent reply when
    there is one, the submission otherwise.
    """
    content = (payload.content or "").strip()
    if not content:
        raise ValidationError("Reply content is required")
    sub = await session.get(PromptSubmission, _uuid(submission_id, "Submission"), with_for_update=True)
    if sub is None:
        raise NotFound("Submission not found")
    if sub.status not in VISIBLE_TO_PUBLIC:
        raise ValidationError("Can only reply to approved submissions")

    parent = None
    if payload.parent_reply_id is not None:
        parent = await session.get(PromptReply, payload.parent_reply_id, with_for_update=True)
        if parent is None or parent.submission_id != sub.id:
            raise NotFound("Parent reply not found")

    reply = PromptReply(
        id=uuid.uuid4(),
        submission_id=sub.id,
        parent_reply_id=parent.id if parent else None,
        author_id=actor.id,
        author_type=actor.type,
        content=content,
        reply_count=0,
        is_hidden=False,
    )
    session.add(reply)
    if parent is not None:
        parent.reply_count = int(parent.reply_count or 0) + 1
    else:
        sub.reply_count = int(sub.reply_count or 0) + 1

    target = parent if parent is not None else sub
    if not actor.owns(target.author_id, target.author_type):
        notify(
            session, target.author_id, target.author_type,
            "New reply",
            "Someone replied to your prompt response" if parent is None else "Someone replied to your comment",
            {"type": "prompt_reply", "post_id": str(sub.post_id), "submission_id": str(sub.id), "reply_id": str(reply.id)},
        )
    await session.flush()
    log.info("prompt.reply_created", submission_id=str(sub.id), reply_id=str(reply.id),
             parent_reply_id=str(parent.id) if parent else None)
    return reply


async def list_replies(
    session: AsyncSession,
    submission_id,
    viewer: Actor | None,
    limit: int = 20,
    offset: int = 0,
) -> list[PromptReply]:
    sub = await session.get(PromptSubmission, _uuid(submission_id, "Submission"))
    if sub is None:
        raise NotFound("Submission not found")
    post = await get_post_or_404(session, sub.post_id, "prompt")
    q = select(PromptReply).where(PromptReply.submission_id == sub.id)
    # hidden replies stay visible to the prompt author and to whoever wrote them
    if viewer is None:
        q = q.where(PromptReply.is_hidden.is_(False))
    elif not viewer.owns(post.author_id, post.author_type):
        q = q.where(
            (PromptReply.is_hidden.is_(False))
            | ((PromptReply.author_id == viewer.id) & (PromptReply.author_type == viewer.type))
        )
    q = q.order_by(PromptReply.created_at.asc()).limit(limit).offset(offset)
    return list((await session.execute(q)).scalars().all())


async def hide_reply(session: AsyncSession, reply_id, actor: Actor) -> PromptReply:
    """Toggle a reply's hidden flag. Only the prompt author moderates replies."""
    reply = await session.get(PromptReply, _uuid(reply_id, "Reply"))
    if reply is None:
        raise NotFound("Reply not found")
    sub = await session.get(PromptSubmission, reply.submission_id)
    post = await get_post_or_404(session, sub.post_id, "prompt")
    if not actor.owns(post.author_id, post.author_type):
        raise AuthorizationDenied("Only the prompt author can hide replies")

    reply.is_hidden = not reply.is_hidden
    reply.hidden_by = actor.id if reply.is_hidden else None
    reply.hidden_at = utcnow() if reply.is_hidden else None
    await session.flush()
    log.info("prompt.reply_hidden", reply_id=str(reply.id), hidden=reply.is_hidden)
    return reply
