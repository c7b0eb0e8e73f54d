"""Poll voting with denormalised tallies.

Tallies live in the poll's ``type_data`` (``options[i].vote_count`` and
``total_votes``). ``total_votes`` counts voters, not selections: it moves only
on a first vote or an explicit removal, never on a change of selection.
"""
from __future__ import annotations
from datetime import datetime
import structlog
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from cards.auth_deps import Actor
from cards.errors import ValidationError
from cards.models.poll import PollVote
from cards.models.post import Post
from cards.schemas.posts import PollCreate
from cards.schemas.polls import VoteResult, PollResults, OptionResult, VoteStatus
from cards.schemas.type_data import PollData, PollOption
from cards.services.card_state import has_ended
from cards.services.store import (
    get_post_or_404, lock_post, read_type_data, write_type_data, require_community, round_pct,
)

log = structlog.get_logger()

MIN_OPTIONS = 2
MAX_OPTIONS = 10


def create_poll(actor: Actor, payload: PollCreate) -> Post:
    require_community(actor, "polls")
    question = (payload.question or "").strip()
    if not question:
        raise ValidationError("Poll question is required")
    if len(payload.options) < MIN_OPTIONS:
        raise ValidationError(f"At least {MIN_OPTIONS} poll options are required")
    if len(payload.options) > MAX_OPTIONS:
        raise ValidationError(f"Maximum {MAX_OPTIONS} poll options allowed")
    options = []
    for i, text in enumerate(payload.options):
        if not text or not text.strip():
            raise ValidationError(f"Option {i + 1} cannot be empty")
        options.append(PollOption(index=i, text=text.strip()))

    data = PollData(
        question=question,
        options=options,
        allow_multiple=payload.allow_multiple,
        show_results_before_vote=payload.show_results_before_vote,
    )
    return Post(
        post_type="poll",
        author_id=actor.id,
        author_type=actor.type,
        caption=payload.caption,
        status="active",
        media_urls=[],
        expires_at=payload.expires_at,
        type_data=data.model_dump(mode="json"),
    )


async def _voted_indexes(session: AsyncSession, post_id, actor: Actor) -> list[int]:
    rows = (await session.execute(
        select(PollVote.option_index).where(
            PollVote.post_id == post_id,
            PollVote.voter_id == actor.id,
            PollVote.voter_type == actor.type,
        )
    )).scalars().all()
    return sorted(rows)


async def vote(session: AsyncSession, post_id, actor: Actor, indexes: list[int], now: datetime | None = None) -> VoteResult:
    post = await lock_post(session, post_id)
    if post.post_type != "poll":
        raise ValidationError("This post is not a poll")
    if post.status != "active":
        raise ValidationError("This poll is no longer active")
    if has_ended(post.expires_at, now):
        raise ValidationError("This poll has expired")

    data = read_type_data(post, PollData)
    requested = sorted(set(indexes))
    if not requested:
        raise ValidationError("option_index is required")
    if len(requested) > 1 and not data.allow_multiple:
        raise ValidationError("This poll only allows single selection")
    for idx in requested:
        if idx < 0 or idx >= len(data.options):
            raise ValidationError(f"Invalid option index: {idx}")

    previous = await _voted_indexes(session, post.id, actor)
    if previous == requested:
        return VoteResult(message="Vote unchanged", voted_indexes=requested, total_votes=data.total_votes, options=data.options)

    changing = bool(previous)
    if changing:
        await session.execute(
            delete(PollVote).where(
                PollVote.post_id == post.id,
                PollVote.voter_id == actor.id,
                PollVote.voter_type == actor.type,
            )
        )
    for idx in requested:
        session.add(PollVote(post_id=post.id, voter_id=actor.id, voter_type=actor.type, option_index=idx))

    for opt in data.options:
        if opt.index in previous:
            opt.vote_count = max(0, opt.vote_count - 1)
        if opt.index in requested:
            opt.vote_count += 1
    if not changing:
        data.total_votes += 1
    write_type_data(post, data)
    await session.flush()

    log.info("poll.vote_recorded", post_id=str(post.id), voter_id=actor.id, voter_type=actor.type,
             indexes=requested, changed=changing)
    return VoteResult(
        message="Vote changed" if changing else "Vote recorded",
        voted_indexes=requested,
        total_votes=data.total_votes,
        options=data.options,
    )


async def remove_vote(session: AsyncSession, post_id, actor: Actor) -> VoteResult:
    post = await lock_post(session, post_id, "poll")
    previous = await _voted_indexes(session, post.id, actor)
    if not previous:
        raise ValidationError("You haven't voted on this poll")

    await session.execute(
        delete(PollVote).where(
            PollVote.post_id == post.id,
            PollVote.voter_id == actor.id,
            PollVote.voter_type == actor.type,
        )
    )
    data = read_type_data(post, PollData)
    for opt in data.options:
        if opt.index in previous:
            opt.vote_count = max(0, opt.vote_count - 1)
    data.total_votes = max(0, data.total_votes - 1)
    write_type_data(post, data)
    await session.flush()

    log.info("poll.vote_removed", post_id=str(post.id), voter_id=actor.id, voter_type=actor.type)
    return VoteResult(message="Vote removed", total_votes=data.total_votes, options=data.options)


def results_visible(post: Post, data: PollData, has_voted: bool, now: datetime | None = None) -> bool:
    return has_ended(post.expires_at, now) or post.status == "expired" or has_voted or data.show_results_before_vote


async def get_results(session: AsyncSession, post_id, viewer: Actor | None, now: datetime | None = None) -> PollResults:
    post = await get_post_or_404(session, post_id, "poll")
    data = read_type_data(post, PollData)
    voted = await _voted_indexes(session, post.id, viewer) if viewer else []
    ended = has_ended(post.expires_at, now) or post.status == "expired"
    show = results_visible(post, data, bool(voted), now)

    return PollResults(
        post_id=post.id,
        question=data.question,
        options=[
            OptionResult(
                index=opt.index,
                text=opt.text,
                vote_count=opt.vote_count if show else None,
                percentage=round_pct(opt.vote_count, data.total_votes) if show and data.total_votes > 0 else None,
            )
            for opt in data.options
        ],
        total_votes=data.total_votes if show else None,
        has_voted=bool(voted),
        user_voted_indexes=voted,
        is_ended=ended,
        show_results=show,
        expires_at=post.expires_at,
    )


async def vote_status(session: AsyncSession, post_id, actor: Actor) -> VoteStatus:
    post = await get_post_or_404(session, post_id, "poll")
    voted = await _voted_indexes(session, post.id, actor)
    return VoteStatus(has_voted=bool(voted), voted_indexes=voted)


async def masked_type_data(session: AsyncSession, post: Post, viewer: Actor | None) -> dict:
    """Poll ``type_data`` as a viewer may see it: counts are nulled until results are visible."""
    data = read_type_data(post, PollData)
    voted = await _voted_indexes(session, post.id, viewer) if viewer else []
    if results_visible(post, data, bool(voted)):
        return data.model_dump(mode="json")
    raw = data.model_dump(mode="json")
    raw["total_votes"] = None
    for opt in raw["options"]:
        opt["vote_count"] = None
    return raw
