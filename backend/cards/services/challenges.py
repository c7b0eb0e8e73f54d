"""Challenge participation, proofs, moderation and tag propagation.

Two paths create a submission: the explicit submit action, and tagging a
challenge from an ordinary media post. Tag-originated submissions are
auto-approved because the source post is already public, and every step after
the media post insert is best-effort: each runs in its own savepoint so a
failure is logged without unwinding the steps before it or the post itself.
"""
from __future__ import annotations
import uuid
from datetime import datetime
import structlog
from sqlalchemy import select, func, false
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cards.auth_deps import Actor
from cards.db import utcnow
from cards.errors import AuthorizationDenied, CardError, Conflict, NotFound, ValidationError
from cards.models.challenge import (
    ChallengeParticipation,
    ChallengeSubmission,
    ChallengeSubmissionSource,
    ChallengeSubmissionLike,
    SubmissionRemovalRequest,
)
from cards.models.post import Post
from cards.schemas.challenges import (
    ChallengeSubmissionCreate, ChallengeSubmissionPublic, ChallengeSubmissionList,
)
from cards.schemas.posts import ChallengeCreate
from cards.schemas.type_data import ChallengeData
from cards.services.card_state import has_ended
from cards.services.notifications import notify
from cards.services.store import (
    get_post_or_404, lock_post, read_type_data, write_type_data, require_community, round_pct,
)

log = structlog.get_logger()

COUNTED = ("pending", "approved", "featured")
PUBLIC = ("approved", "featured")


def _uuid(value, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFound(f"{what} not found")


def infer_submission_type(media_urls: list[str] | None, video_url: str | None) -> str:
    if video_url:
        return "video"
    if media_urls:
        return "image"
    return "text"


def create_challenge(actor: Actor, payload: ChallengeCreate) -> Post:
    require_community(actor, "challenges")
    title = (payload.title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    data = ChallengeData(
        title=title,
        description=(payload.description or "").strip(),
        challenge_type=payload.challenge_type,
        submission_type=payload.submission_type,
        target_count=payload.target_count,
        max_submissions_per_user=payload.max_submissions_per_user,
        require_approval=payload.require_approval,
        show_proofs_immediately=payload.show_proofs_immediately,
    )
    return Post(
        post_type="challenge",
        author_id=actor.id,
        author_type=actor.type,
        caption=payload.caption,
        status="active",
        media_urls=list(payload.media_urls),
        expires_at=payload.expires_at,
        type_data=data.model_dump(mode="json"),
    )


async def _participation(session: AsyncSession, challenge_id, actor: Actor) -> ChallengeParticipation | None:
    return await session.scalar(
        select(ChallengeParticipation).where(
            ChallengeParticipation.post_id == challenge_id,
            ChallengeParticipation.participant_id == actor.id,
            ChallengeParticipation.participant_type == actor.type,
        )
    )


async def _add_participation(session: AsyncSession, challenge: Post, actor: Actor) -> ChallengeParticipation:
    part = ChallengeParticipation(
        id=uuid.uuid4(),
        post_id=challenge.id,
        participant_id=actor.id,
        participant_type=actor.type,
        status="joined",
        progress=0,
        is_highlighted=False,
    )
    session.add(part)
    data = read_type_data(challenge, ChallengeData)
    data.participant_count += 1
    write_type_data(challenge, data)
    await session.flush()
    return part


async def recount_submissions(session: AsyncSession, challenge: Post) -> int:
    total = await session.scalar(
        select(func.count()).select_from(ChallengeSubmission).where(ChallengeSubmission.post_id == challenge.id)
    )
    data = read_type_data(challenge, ChallengeData)
    data.submission_count = int(total or 0)
    write_type_data(challenge, data)
    return data.submission_count


def _apply_progress(data: ChallengeData, part: ChallengeParticipation, progress: int, started: bool) -> None:
    was_completed = part.status == "completed"
    part.progress = progress
    if progress >= 100:
        part.status = "completed"
        if part.completed_at is None:
            part.completed_at = utcnow()
    else:
        part.status = "in_progress" if started else "joined"
        part.completed_at = None

    if part.status == "completed" and not was_completed:
        data.completed_count += 1
    elif was_completed and part.status != "completed":
        data.completed_count = max(0, data.completed_count - 1)


async def recompute_progress(session: AsyncSession, challenge: Post, part: ChallengeParticipation) -> None:
    """Derive a progress-challenge participant's progress from their non-rejected submissions."""
    data = read_type_data(challenge, ChallengeData)
    if data.challenge_type != "progress":
        return
    count = await session.scalar(
        select(func.count()).select_from(ChallengeSubmission).where(
            ChallengeSubmission.participation_id == part.id,
            ChallengeSubmission.status.in_(COUNTED),
        )
    )
    count = int(count or 0)
    _apply_progress(data, part, min(100, round_pct(count, data.target_count)), started=count > 0)
    write_type_data(challenge, data)


async def _own_participation(session: AsyncSession, post_id, actor: Actor, now: datetime | None):
    challenge = await lock_post(session, post_id, "challenge")
    part = await _participation(session, challenge.id, actor)
    if part is None:
        raise NotFound("Not participating in this challenge")
    if has_ended(challenge.expires_at, now):
        raise ValidationError("This challenge has ended")
    data = read_type_data(challenge, ChallengeData)
    if data.challenge_type == "progress":
        raise ValidationError("Progress for this challenge is tracked from submissions")
    return challenge, part, data


async def update_progress(
    session: AsyncSession,
    post_id,
    actor: Actor,
    progress: int,
    now: datetime | None = None,
) -> ChallengeParticipation:
    """Self-reported progress for single and community challenges."""
    if progress is None or not 0 <= progress <= 100:
        raise ValidationError("Progress must be between 0 and 100")
    challenge, part, data = await _own_participation(session, post_id, actor, now)
    _apply_progress(data, part, int(progress), started=True)
    write_type_data(challenge, data)
    await session.flush()
    log.info("challenge.progress_updated", post_id=str(challenge.id), participation_id=str(part.id),
             progress=part.progress, status=part.status)
    return part


async def mark_complete(session: AsyncSession, post_id, actor: Actor, now: datetime | None = None) -> ChallengeParticipation:
    challenge, part, data = await _own_participation(session, post_id, actor, now)
    if part.status == "completed":
        raise ValidationError("Already completed")
    _apply_progress(data, part, 100, started=True)
    write_type_data(challenge, data)
    if not actor.owns(challenge.author_id, challenge.author_type):
        notify(
            session, challenge.author_id, challenge.author_type,
            "Challenge completed!",
            "A participant completed your challenge",
            {"type": "challenge_completed", "post_id": str(challenge.id), "participation_id": str(part.id)},
        )
    await session.flush()
    log.info("challenge.completed", post_id=str(challenge.id), participation_id=str(part.id))
    return part


async def join(session: AsyncSession, post_id, actor: Actor, now: datetime | None = None) -> ChallengeParticipation:
    challenge = await lock_post(session, post_id, "challenge")
    if has_ended(challenge.expires_at, now):
        raise ValidationError("This challenge has ended")
    if await _participation(session, challenge.id, actor):
        raise Conflict("Already joined")
    part = await _add_participation(session, challenge, actor)
    log.info("challenge.joined", post_id=str(challenge.id), participant_id=actor.id, participant_type=actor.type)
    return part


async def leave(session: AsyncSession, post_id, actor: Actor) -> None:
    challenge = await lock_post(session, post_id, "challenge")
    part = await _participation(session, challenge.id, actor)
    if part is None:
        raise ValidationError("Not joined")
    was_completed = part.status == "completed"
    await session.delete(part)
    await session.flush()

    data = read_type_data(challenge, ChallengeData)
    data.participant_count = max(0, data.participant_count - 1)
    if was_completed:
        data.completed_count = max(0, data.completed_count - 1)
    write_type_data(challenge, data)
    await recount_submissions(session, challenge)
    await session.flush()
    log.info("challenge.left", post_id=str(challenge.id), participant_id=actor.id, participant_type=actor.type)


async def submit_proof(
    session: AsyncSession,
    post_id,
    actor: Actor,
    payload: ChallengeSubmissionCreate,
    now: datetime | None = None,
) -> ChallengeSubmission:
    challenge = await lock_post(session, post_id, "challenge")
    part = await _participation(session, challenge.id, actor)
    if part is None:
        raise ValidationError("You must join the challenge first")
    if has_ended(challenge.expires_at, now):
        raise ValidationError("This challenge has ended")

    data = read_type_data(challenge, ChallengeData)
    existing = await session.scalar(
        select(func.count()).select_from(ChallengeSubmission).where(ChallengeSubmission.participation_id == part.id)
    )
    if int(existing or 0) >= data.max_submissions_per_user:
        raise ValidationError(f"You can only submit {data.max_submissions_per_user} time(s) for this challenge")

    submission_type = infer_submission_type(payload.media_urls, payload.video_url)
    if data.submission_type != "any" and submission_type != data.submission_type:
        raise ValidationError(f"This challenge requires {data.submission_type} submissions")
    content = (payload.content or "").strip() or None
    if submission_type == "text" and not content:
        raise ValidationError("Submission content is required")

    sub = ChallengeSubmission(
        id=uuid.uuid4(),
        post_id=challenge.id,
        participation_id=part.id,
        submission_type=submission_type,
        status="pending" if data.require_approval else "approved",
        content=content,
        media_urls=list(payload.media_urls) or None,
        video_url=payload.video_url,
        video_thumbnail=payload.video_thumbnail,
        is_featured=False,
        like_count=0,
    )
    session.add(sub)
    data.submission_count += 1
    write_type_data(challenge, data)
    await session.flush()
    await recompute_progress(session, challenge, part)

    if not actor.owns(challenge.author_id, challenge.author_type):
        notify(
            session, challenge.author_id, challenge.author_type,
            "New challenge submission!",
            "Someone submitted proof for your challenge",
            {"type": "challenge_submission", "post_id": str(challenge.id), "submission_id": str(sub.id)},
        )
    await session.flush()
    log.info("challenge.submission_created", post_id=str(challenge.id), submission_id=str(sub.id), status=sub.status)
    return sub


async def apply_challenge_tag(
    session: AsyncSession,
    source_post: Post,
    challenge_id,
    actor: Actor,
    now: datetime | None = None,
) -> ChallengeSubmission | None:
    """Auto-join the tagger and file the source post as an approved submission.

    Never raises: a missing or ended challenge is skipped silently and any later
    failure is logged, leaving earlier steps in place.
    """
    try:
        cid = uuid.UUID(str(challenge_id))
    except ValueError:
        log.info("challenge.tag_skipped", source_post_id=str(source_post.id), reason="bad_id")
        return None
    challenge = (await session.execute(
        select(Post)
        .where(Post.id == cid, Post.post_type == "challenge")
        .with_for_update()
        .execution_options(populate_existing=True)
    )).scalar_one_or_none()
    if challenge is None or has_ended(challenge.expires_at, now):
        log.info("challenge.tag_skipped", source_post_id=str(source_post.id), challenge_id=str(cid),
                 reason="missing" if challenge is None else "ended")
        return None

    try:
        async with session.begin_nested():
            part = await _participation(session, challenge.id, actor)
            joined = part is None
            if joined:
                part = await _add_participation(session, challenge, actor)
    except (SQLAlchemyError, CardError):
        log.error("challenge.tag_join_failed", challenge_id=str(challenge.id), exc_info=True)
        return None

    try:
        async with session.begin_nested():
            sub = ChallengeSubmission(
                id=uuid.uuid4(),
                post_id=challenge.id,
                participation_id=part.id,
                submission_type=infer_submission_type(source_post.media_urls, source_post.video_url),
                status="approved",
                content=source_post.caption,
                media_urls=list(source_post.media_urls or []) or None,
                video_url=source_post.video_url,
                is_featured=False,
                like_count=0,
            )
            session.add(sub)
            source_post.linked_challenge_id = challenge.id
            await session.flush()
    except (SQLAlchemyError, CardError):
        log.error("challenge.tag_submission_failed", challenge_id=str(challenge.id), exc_info=True)
        return None

    try:
        async with session.begin_nested():
            session.add(ChallengeSubmissionSource(
                submission_id=sub.id, source_post_id=source_post.id, is_from_tagged_post=True,
            ))
            await session.flush()
    except SQLAlchemyError:
        log.warning("challenge.tag_source_link_failed", submission_id=str(sub.id), exc_info=True)

    try:
        async with session.begin_nested():
            data = read_type_data(challenge, ChallengeData)
            data.submission_count += 1
            write_type_data(challenge, data)
            await session.flush()
            await recompute_progress(session, challenge, part)
            await session.flush()
    except (SQLAlchemyError, CardError):
        log.warning("challenge.tag_counters_failed", challenge_id=str(challenge.id), exc_info=True)

    if not actor.owns(challenge.author_id, challenge.author_type):
        notify(
            session, challenge.author_id, challenge.author_type,
            "New challenge submission!",
            "Someone tagged your challenge in a post",
            {"type": "challenge_submission", "post_id": str(challenge.id), "submission_id": str(sub.id)},
        )
    log.info("challenge.tag_applied", challenge_id=str(challenge.id), source_post_id=str(source_post.id),
             submission_id=str(sub.id), auto_joined=joined)
    return sub


async def handle_source_post_deleted(session: AsyncSession, source_post: Post, now: datetime | None = None) -> None:
    """Keep tag-originated submissions consistent with the deletion of their source post.

    Ended challenge: the submission stays and loses its source. Active challenge:
    the submission goes and the challenge's counters are recomputed.
    """
    sources = (await session.execute(
        select(ChallengeSubmissionSource).where(ChallengeSubmissionSource.source_post_id == source_post.id)
    )).scalars().all()
    for src in sources:
        sub = await session.get(ChallengeSubmission, src.submission_id)
        if sub is None:
            continue
        challenge = await lock_post(session, sub.post_id, "challenge")
        if has_ended(challenge.expires_at, now):
            src.source_post_id = None
            log.info("challenge.source_detached", submission_id=str(sub.id), challenge_id=str(challenge.id))
            continue

        part = await session.get(ChallengeParticipation, sub.participation_id)
        await session.delete(sub)
        await session.flush()
        await recount_submissions(session, challenge)
        if part is not None:
            await recompute_progress(session, challenge, part)
        log.info("challenge.tagged_submission_removed", submission_id=str(sub.id), challenge_id=str(challenge.id))
    await session.flush()


async def list_submissions(
    session: AsyncSession,
    post_id,
    viewer: Actor | None,
    filter: str = "approved",
    limit: int = 20,
    offset: int = 0,
    now: datetime | None = None,
) -> ChallengeSubmissionList:
    challenge = await get_post_or_404(session, post_id, "challenge")
    data = read_type_data(challenge, ChallengeData)
    is_author = viewer is not None and viewer.owns(challenge.author_id, challenge.author_type)
    expired = has_ended(challenge.expires_at, now)
    proofs_visible = is_author or data.show_proofs_immediately or expired

    q = (
        select(ChallengeSubmission, ChallengeParticipation, ChallengeSubmissionSource)
        .join(ChallengeParticipation, ChallengeParticipation.id == ChallengeSubmission.participation_id)
        .outerjoin(ChallengeSubmissionSource, ChallengeSubmissionSource.submission_id == ChallengeSubmission.id)
        .where(ChallengeSubmission.post_id == challenge.id)
    )
    if is_author and filter == "all":
        pass
    elif is_author and filter in ("pending", "rejected"):
        q = q.where(ChallengeSubmission.status == filter)
    elif filter == "featured":
        q = q.where(ChallengeSubmission.is_featured.is_(True), ChallengeSubmission.status.in_(PUBLIC))
    else:
        q = q.where(ChallengeSubmission.status.in_(PUBLIC))

    if not proofs_visible:
        if viewer is None:
            q = q.where(false())
        else:
            q = q.where(
                ChallengeParticipation.participant_id == viewer.id,
                ChallengeParticipation.participant_type == viewer.type,
            )
    q = q.order_by(ChallengeSubmission.is_featured.desc(), ChallengeSubmission.created_at.desc()).limit(limit).offset(offset)
    rows = (await session.execute(q)).all()

    liked: set = set()
    if viewer is not None and rows:
        liked = set((await session.execute(
            select(ChallengeSubmissionLike.submission_id).where(
                ChallengeSubmissionLike.submission_id.in_([s.id for s, _, _ in rows]),
                ChallengeSubmissionLike.user_id == viewer.id,
                ChallengeSubmissionLike.user_type == viewer.type,
            )
        )).scalars().all())

    return ChallengeSubmissionList(
        submissions=[submission_public(s, p, src, viewer, s.id in liked) for s, p, src in rows],
        proofs_visible=proofs_visible,
        is_author=is_author,
        is_expired=expired,
        expires_at=challenge.expires_at,
    )


def submission_public(
    sub: ChallengeSubmission,
    part: ChallengeParticipation,
    src: ChallengeSubmissionSource | None = None,
    viewer: Actor | None = None,
    has_liked: bool = False,
) -> ChallengeSubmissionPublic:
    return ChallengeSubmissionPublic(
        id=sub.id,
        post_id=sub.post_id,
        participation_id=part.id,
        participant_id=part.participant_id,
        participant_type=part.participant_type,
        submission_type=sub.submission_type,
        status=sub.status,
        content=sub.content,
        media_urls=sub.media_urls or [],
        video_url=sub.video_url,
        video_thumbnail=sub.video_thumbnail,
        is_featured=sub.is_featured,
        like_count=sub.like_count,
        has_liked=has_liked,
        is_own_submission=viewer is not None and viewer.owns(part.participant_id, part.participant_type),
        source_post_id=src.source_post_id if src else None,
        is_from_tagged_post=bool(src and src.is_from_tagged_post),
        source_post_deleted=bool(src and src.is_from_tagged_post and src.source_post_id is None),
        created_at=sub.created_at,
    )


async def _load_submission(session: AsyncSession, submission_id) -> tuple[ChallengeSubmission, ChallengeParticipation, Post]:
    sub = await session.get(ChallengeSubmission, _uuid(submission_id, "Submission"))
    if sub is None:
        raise NotFound("Submission not found")
    part = await session.get(ChallengeParticipation, sub.participation_id)
    challenge = await lock_post(session, sub.post_id, "challenge")
    return sub, part, challenge


def _require_host(challenge: Post, actor: Actor, action: str) -> None:
    if not actor.owns(challenge.author_id, challenge.author_type):
        raise AuthorizationDenied(f"Only the challenge host can {action}")


async def moderate_submission(session: AsyncSession, submission_id, actor: Actor, status: str) -> ChallengeSubmission:
    if status not in ("approved", "rejected"):
        raise ValidationError("Status must be 'approved' or 'rejected'")
    sub, part, challenge = await _load_submission(session, submission_id)
    _require_host(challenge, actor, "moderate submissions")

    if status == "rejected":
        sub.is_featured = False
    # status stays "featured" while the flag is set
    sub.status = "featured" if sub.is_featured else status
    sub.moderated_by = actor.id
    sub.moderated_at = utcnow()
    await session.flush()
    await recompute_progress(session, challenge, part)

    notify(
        session, part.participant_id, part.participant_type,
        "Submission approved!" if status == "approved" else "Submission not approved",
        "Your challenge proof was approved" if status == "approved" else "Your challenge proof was not approved",
        {"type": "challenge_moderation", "post_id": str(challenge.id), "submission_id": str(sub.id), "status": status},
    )
    await session.flush()
    log.info("challenge.submission_moderated", submission_id=str(sub.id), status=status)
    return sub


async def feature_submission(session: AsyncSession, submission_id, actor: Actor) -> ChallengeSubmission:
    sub, part, challenge = await _load_submission(session, submission_id)
    _require_host(challenge, actor, "feature submissions")
    if sub.status not in PUBLIC:
        raise ValidationError("Only approved submissions can be featured")

    sub.is_featured = not sub.is_featured
    sub.status = "featured" if sub.is_featured else "approved"
    if sub.is_featured:
        notify(
            session, part.participant_id, part.participant_type,
            "Your submission was featured!",
            "The challenge host featured your proof",
            {"type": "challenge_featured", "post_id": str(challenge.id), "submission_id": str(sub.id)},
        )
    await session.flush()
    log.info("challenge.submission_featured", submission_id=str(sub.id), featured=sub.is_featured)
    return sub


async def highlight_participant(session: AsyncSession, participation_id, actor: Actor) -> ChallengeParticipation:
    part = await session.get(ChallengeParticipation, _uuid(participation_id, "Participant"))
    if part is None:
        raise NotFound("Participant not found")
    challenge = await get_post_or_404(session, part.post_id, "challenge")
    _require_host(challenge, actor, "highlight participants")
    part.is_highlighted = not part.is_highlighted
    await session.flush()
    return part


async def like_submission(session: AsyncSession, submission_id, actor: Actor) -> ChallengeSubmission:
    sub = await session.get(ChallengeSubmission, _uuid(submission_id, "Submission"), with_for_update=True)
    if sub is None:
        raise NotFound("Submission not found")
    existing = await session.scalar(
        select(ChallengeSubmissionLike.id).where(
            ChallengeSubmissionLike.submission_id == sub.id,
            ChallengeSubmissionLike.user_id == actor.id,
            ChallengeSubmissionLike.user_type == actor.type,
        )
    )
    if existing:
        raise Conflict("Already liked")
    session.add(ChallengeSubmissionLike(submission_id=sub.id, user_id=actor.id, user_type=actor.type))
    sub.like_count = int(sub.like_count or 0) + 1
    await session.flush()
    return sub


async def unlike_submission(session: AsyncSession, submission_id, actor: Actor) -> ChallengeSubmission:
    sub = await session.get(ChallengeSubmission, _uuid(submission_id, "Submission"), with_for_update=True)
    if sub is None:
        raise NotFound("Submission not found")
    like = await session.scalar(
        select(ChallengeSubmissionLike).where(
            ChallengeSubmissionLike.submission_id == sub.id,
            ChallengeSubmissionLike.user_id == actor.id,
            ChallengeSubmissionLike.user_type == actor.type,
        )
    )
    if like is None:
        raise ValidationError("Not liked")
    await session.delete(like)
    sub.like_count = max(0, int(sub.like_count or 0) - 1)
    await session.flush()
    return sub


async def request_removal(
    session: AsyncSession,
    submission_id,
    actor: Actor,
    reason: str | None = None,
    now: datetime | None = None,
) -> SubmissionRemovalRequest:
    sub, part, challenge = await _load_submission(session, submission_id)
    if not actor.owns(part.participant_id, part.participant_type):
        raise AuthorizationDenied("You can only request removal of your own submissions")
    if not has_ended(challenge.expires_at, now):
        raise ValidationError("You can only request removal after the challenge has ended. Delete the post instead.")

    existing = await session.scalar(
        select(SubmissionRemovalRequest).where(
            SubmissionRemovalRequest.submission_id == sub.id,
            SubmissionRemovalRequest.requester_id == actor.id,
            SubmissionRemovalRequest.requester_type == actor.type,
        )
    )
    if existing is not None and existing.status == "pending":
        raise Conflict("Removal request already pending")
    if existing is not None and existing.status == "rejected":
        raise Conflict("Removal request was previously rejected")

    req = SubmissionRemovalRequest(
        id=uuid.uuid4(),
        post_id=challenge.id,
        submission_id=sub.id,
        requester_id=actor.id,
        requester_type=actor.type,
        reason=(reason or "").strip() or None,
        status="pending",
    )
    session.add(req)
    notify(
        session, challenge.author_id, challenge.author_type,
        "Submission removal request",
        "A participant asked to remove their challenge submission",
        {"type": "removal_request", "post_id": str(challenge.id), "submission_id": str(sub.id), "request_id": str(req.id)},
    )
    await session.flush()
    log.info("challenge.removal_requested", submission_id=str(sub.id), request_id=str(req.id))
    return req


async def list_removal_requests(session: AsyncSession, post_id, actor: Actor) -> list[SubmissionRemovalRequest]:
    challenge = await get_post_or_404(session, post_id, "challenge")
    _require_host(challenge, actor, "view removal requests")
    return list((await session.execute(
        select(SubmissionRemovalRequest)
        .where(SubmissionRemovalRequest.post_id == challenge.id, SubmissionRemovalRequest.status == "pending")
        .order_by(SubmissionRemovalRequest.created_at.asc())
    )).scalars().all())


async def review_removal_request(session: AsyncSession, request_id, actor: Actor, status: str) -> SubmissionRemovalRequest:
    if status not in ("approved", "rejected"):
        raise ValidationError("Status must be 'approved' or 'rejected'")
    req = await session.get(SubmissionRemovalRequest, _uuid(request_id, "Removal request"))
    if req is None:
        raise NotFound("Removal request not found")
    challenge = await lock_post(session, req.post_id, "challenge")
    _require_host(challenge, actor, "review removal requests")
    if req.status != "pending":
        raise Conflict("This request has already been reviewed")

    req.status = status
    req.reviewed_by = actor.id
    req.reviewed_at = utcnow()

    if status == "approved" and req.submission_id is not None:
        sub = await session.get(ChallengeSubmission, req.submission_id)
        if sub is not None:
            part = await session.get(ChallengeParticipation, sub.participation_id)
            await session.delete(sub)
            req.submission_id = None
            await session.flush()
            await recount_submissions(session, challenge)
            if part is not None:
                await recompute_progress(session, challenge, part)

    notify(
        session, req.requester_id, req.requester_type,
        "Your removal request was approved" if status == "approved" else "Your removal request was declined",
        "Your challenge submission has been removed." if status == "approved"
        else "The challenge host declined your removal request.",
        {"type": "removal_request_review", "post_id": str(challenge.id), "status": status},
    )
    await session.flush()
    log.info("challenge.removal_reviewed", request_id=str(req.id), status=status)
    return req


async def list_participants(session: AsyncSession, post_id, limit: int = 50, offset: int = 0) -> list[ChallengeParticipation]:
    challenge = await get_post_or_404(session, post_id, "challenge")
    return list((await session.execute(
        select(ChallengeParticipation)
        .where(ChallengeParticipation.post_id == challenge.id)
        .order_by(
            ChallengeParticipation.is_highlighted.desc(),
            ChallengeParticipation.progress.desc(),
            ChallengeParticipation.created_at.desc(),
        )
        .limit(limit)
        .offset(offset)
    )).scalars().all())


async def participant_ids(session: AsyncSession, post_id) -> list[tuple[int, str]]:
    rows = (await session.execute(
        select(ChallengeParticipation.participant_id, ChallengeParticipation.participant_type)
        .where(ChallengeParticipation.post_id == post_id)
    )).all()
    return [(int(pid), ptype) for pid, ptype in rows]
