"""Post creation and deletion, dispatched on ``post_type``."""
from __future__ import annotations
import uuid
from datetime import datetime
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cards.auth_deps import Actor, ACTOR_TYPES
from cards.errors import ValidationError
from cards.models.post import Post
from cards.schemas.posts import (
    MediaPostCreate, PollCreate, PromptCreate, QnACreate, ChallengeCreate, OpportunityCreate, PostPublic,
)
from cards.schemas.type_data import MediaData, OpportunityData
from cards.services import challenges, polls, prompts, qna
from cards.services.card_state import post_state, state_label, is_interaction_disabled, as_utc
from cards.services.notifications import notify
from cards.services.store import get_post_or_404, require_author, require_community

log = structlog.get_logger()

MAX_MEDIA = 10
TAGGABLE_TYPES = ACTOR_TYPES + ("challenge",)


def _media_post(actor: Actor, payload: MediaPostCreate) -> Post:
    if not payload.media_urls and not payload.video_url:
        raise ValidationError("At least one image is required")
    if len(payload.media_urls) > MAX_MEDIA:
        raise ValidationError(f"Maximum {MAX_MEDIA} images allowed")
    for entity in payload.tagged_entities:
        if not entity.id or entity.type not in TAGGABLE_TYPES:
            raise ValidationError("Invalid tagged entity")
    if sum(1 for e in payload.tagged_entities if e.type == "challenge") > 1:
        raise ValidationError("A post can only be tagged to one challenge")
    return Post(
        post_type="media",
        author_id=actor.id,
        author_type=actor.type,
        caption=payload.caption,
        status="active",
        media_urls=list(payload.media_urls),
        video_url=payload.video_url,
        tagged_entities=[e.model_dump() for e in payload.tagged_entities] or None,
        type_data=MediaData().model_dump(mode="json"),
    )


def _opportunity_post(actor: Actor, payload: OpportunityCreate) -> Post:
    require_community(actor, "opportunities")
    title = (payload.title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    data = OpportunityData(
        title=title,
        description=(payload.description or "").strip(),
        opportunity_types=payload.opportunity_types,
        work_mode=payload.work_mode,
        payment_nature=payload.payment_nature,
    )
    return Post(
        post_type="opportunity",
        author_id=actor.id,
        author_type=actor.type,
        caption=payload.caption,
        status="active",
        media_urls=list(payload.media_urls),
        expires_at=payload.expires_at,
        type_data=data.model_dump(mode="json"),
    )


BUILDERS = {
    MediaPostCreate: _media_post,
    PollCreate: polls.create_poll,
    PromptCreate: prompts.create_prompt,
    QnACreate: qna.create_qna,
    ChallengeCreate: challenges.create_challenge,
    OpportunityCreate: _opportunity_post,
}


async def create_post(session: AsyncSession, actor: Actor, payload, now: datetime | None = None) -> Post:
    post = BUILDERS[type(payload)](actor, payload)
    post.id = uuid.uuid4()
    post.expires_at = as_utc(post.expires_at)
    session.add(post)
    await session.flush()
    log.info("post.created", post_id=str(post.id), post_type=post.post_type, author_id=actor.id, author_type=actor.type)

    if isinstance(payload, MediaPostCreate):
        for entity in payload.tagged_entities:
            if entity.type == "challenge":
                await challenges.apply_challenge_tag(session, post, entity.id, actor, now)
            elif str(entity.id) != str(actor.id) or entity.type != actor.type:
                try:
                    recipient_id = int(entity.id)
                except ValueError:
                    continue
                notify(
                    session, recipient_id, entity.type,
                    "You were tagged in a post",
                    "Someone tagged you in a post",
                    {"type": "tag", "post_id": str(post.id)},
                )
    return post


async def delete_post(session: AsyncSession, post_id, actor: Actor, now: datetime | None = None) -> None:
    post = await get_post_or_404(session, post_id)
    require_author(post, actor, "Only the author can delete this post")
    if post.post_type == "media":
        await challenges.handle_source_post_deleted(session, post, now)
    await session.delete(post)
    await session.flush()
    log.info("post.deleted", post_id=str(post.id), post_type=post.post_type)


async def public_view(session: AsyncSession, post: Post, viewer: Actor | None, now: datetime | None = None) -> PostPublic:
    state = post_state(post, now)
    type_data = post.type_data or {}
    if post.post_type == "poll":
        type_data = await polls.masked_type_data(session, post, viewer)
    return PostPublic(
        id=post.id,
        post_type=post.post_type,
        author_id=post.author_id,
        author_type=post.author_type,
        caption=post.caption,
        status=post.status,
        media_urls=post.media_urls or [],
        video_url=post.video_url,
        tagged_entities=post.tagged_entities,
        type_data=type_data,
        expires_at=post.expires_at,
        closed_at=post.closed_at,
        closure_type=post.closure_type,
        extension_count=post.extension_count or 0,
        original_end_time=post.original_end_time,
        extended_at=post.extended_at,
        linked_challenge_id=post.linked_challenge_id,
        created_at=post.created_at,
        state=state,
        state_label=state_label(state),
        interaction_disabled=is_interaction_disabled(state, post.post_type),
    )
