from __future__ import annotations
from datetime import datetime
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cards.auth_deps import Actor
from cards.config import settings
from cards.db import utcnow
from cards.errors import Conflict, ValidationError
from cards.models.post import Post, CardExtension
from cards.schemas.type_data import ChallengeData
from cards.services.card_state import can_extend, validate_new_end_time, as_utc, EXTENSION_LIMITS
from cards.services.challenges import participant_ids
from cards.services.notifications import notify
from cards.services.store import get_post_or_404, lock_post, read_type_data, require_author

log = structlog.get_logger()


async def extend(
    session: AsyncSession,
    post_id,
    actor: Actor,
    new_end_time: datetime,
    reason: str | None = None,
    now: datetime | None = None,
) -> Post:
    """Push a card's deadline out, keeping an audit row per extension."""
    post = await lock_post(session, post_id)
    require_author(post, actor, "Only the author can extend this card")

    decision = can_extend(post.post_type, post.expires_at, post.extension_count, now)
    if not decision.allowed:
        raise ValidationError(decision.reason)

    submissions = 0
    if post.post_type == "challenge":
        submissions = read_type_data(post, ChallengeData).submission_count
    error = validate_new_end_time(
        post.post_type, post.expires_at, new_end_time, submissions, settings.min_extension_hours,
    )
    if error:
        raise ValidationError(error)

    previous_end = as_utc(post.expires_at)
    new_end_time = as_utc(new_end_time)
    if post.original_end_time is None:
        post.original_end_time = previous_end
    post.expires_at = new_end_time
    post.extended_at = utcnow()
    post.extension_count = int(post.extension_count or 0) + 1
    session.add(CardExtension(
        card_type=post.post_type,
        card_id=post.id,
        original_end_time=previous_end,
        new_end_time=new_end_time,
        extended_by_id=actor.id,
        extended_by_type=actor.type,
        reason=(reason or "").strip() or None,
    ))

    if post.post_type == "challenge":
        for pid, ptype in await participant_ids(session, post.id):
            notify(
                session, pid, ptype,
                "Challenge deadline extended",
                "The deadline has been extended. You have more time to submit!",
                {"type": "challenge_extended", "post_id": str(post.id), "new_end_time": new_end_time.isoformat()},
            )
    await session.flush()
    log.info("card.extended", post_id=str(post.id), post_type=post.post_type, previous_end=str(previous_end),
             new_end=new_end_time.isoformat(), extension_count=post.extension_count)
    return post


async def extension_history(session: AsyncSession, post_id) -> list[CardExtension]:
    post = await get_post_or_404(session, post_id)
    return list((await session.execute(
        select(CardExtension).where(CardExtension.card_id == post.id).order_by(CardExtension.created_at.asc())
    )).scalars().all())


def max_extensions(post_type: str) -> int | None:
    limit = EXTENSION_LIMITS.get(post_type)
    return limit.max_extensions if limit else None


async def close_opportunity(session: AsyncSession, post_id, actor: Actor) -> Post:
    post = await lock_post(session, post_id)
    if post.post_type != "opportunity":
        raise ValidationError("Only opportunities can be manually closed")
    require_author(post, actor, "Only the opportunity creator can close it")
    if post.closed_at is not None:
        raise Conflict("Opportunity is already closed")

    post.closed_at = utcnow()
    # A deadline means the closure coincides with (or follows) the scheduled end
    post.closure_type = "automatic" if post.expires_at is not None else "manual"
    await session.flush()
    log.info("opportunity.closed", post_id=str(post.id), closure_type=post.closure_type)
    return post
