from __future__ import annotations
from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import select, func, text

from cards.auth_deps import Actor
from cards.errors import ValidationError, Conflict
from cards.models.challenge import ChallengeParticipation, ChallengeSubmission, ChallengeSubmissionSource
from cards.models.post import Post
from cards.schemas.posts import ChallengeCreate, MediaPostCreate, TaggedEntity
from cards.services import challenges as challenge_service
from cards.services import posts as post_service


def _now():
    return datetime.now(timezone.utc)


async def _challenge(session, host, **extra) -> Post:
    fields = {"post_type": "challenge", "title": "30 day run", "expires_at": _now() + timedelta(days=3)}
    fields.update(extra)
    post = await post_service.create_post(session, host, ChallengeCreate(**fields))
    await session.commit()
    return post


def _tagged(challenge_id) -> MediaPostCreate:
    return MediaPostCreate(
        post_type="media",
        caption="day one",
        media_urls=["https://cdn.example/run.jpg"],
        tagged_entities=[TaggedEntity(id=str(challenge_id), type="challenge")],
    )


async def _count(session, model, **where) -> int:
    q = select(func.count()).select_from(model)
    for col, value in where.items():
        q = q.where(getattr(model, col) == value)
    return int(await session.scalar(q))


@pytest.mark.asyncio
async def test_tagging_auto_joins_once_and_files_submissions(session, community, member):
    ch = await _challenge(session, community)

    first = await post_service.create_post(session, member, _tagged(ch.id))
    second = await post_service.create_post(session, member, _tagged(ch.id))
    await session.commit()

    assert await _count(session, ChallengeParticipation, post_id=ch.id) == 1
    subs = (await session.execute(
        select(ChallengeSubmission).where(ChallengeSubmission.post_id == ch.id)
    )).scalars().all()
    assert len(subs) == 2
    assert {s.status for s in subs} == {"approved"}
    assert {s.submission_type for s in subs} == {"image"}

    data = (await session.get(Post, ch.id)).type_data
    assert data["participant_count"] == 1
    assert data["submission_count"] == 2
    assert first.linked_challenge_id == ch.id and second.linked_challenge_id == ch.id
    assert await _count(session, ChallengeSubmissionSource, source_post_id=first.id) == 1


@pytest.mark.asyncio
async def test_tagging_missing_or_ended_challenge_still_creates_post(session, community, member):
    ended = await _challenge(session, community, expires_at=_now() - timedelta(hours=1))
    post = await post_service.create_post(session, member, _tagged(ended.id))
    ghost = await post_service.create_post(session, member, _tagged("00000000-0000-0000-0000-000000000000"))
    await session.commit()

    assert post.linked_challenge_id is None and ghost.linked_challenge_id is None
    assert await _count(session, ChallengeSubmission) == 0
    assert await session.get(Post, post.id) is not None


@pytest.mark.asyncio
async def test_two_challenge_tags_are_rejected(session, community, member):
    ch = await _challenge(session, community)
    payload = _tagged(ch.id)
    payload.tagged_entities.append(TaggedEntity(id=str(ch.id), type="challenge"))
    with pytest.raises(ValidationError):
        await post_service.create_post(session, member, payload)


@pytest.mark.asyncio
async def test_deleting_source_of_active_challenge_removes_submission(session, community, member):
    ch = await _challenge(session, community)
    keep = await post_service.create_post(session, member, _tagged(ch.id))
    gone = await post_service.create_post(session, member, _tagged(ch.id))
    await session.commit()

    await post_service.delete_post(session, gone.id, member)
    await session.commit()

    assert await _count(session, ChallengeSubmission, post_id=ch.id) == 1
    assert (await session.get(Post, ch.id)).type_data["submission_count"] == 1
    assert await _count(session, ChallengeSubmissionSource, source_post_id=keep.id) == 1


@pytest.mark.asyncio
async def test_deleting_source_of_ended_challenge_keeps_submission(session, community, member):
    ch = await _challenge(session, community)
    src = await post_service.create_post(session, member, _tagged(ch.id))
    await session.commit()

    later = _now() + timedelta(days=4)
    await post_service.delete_post(session, src.id, member, now=later)
    await session.commit()

    assert await _count(session, ChallengeSubmission, post_id=ch.id) == 1
    assert (await session.get(Post, ch.id)).type_data["submission_count"] == 1

    listing = await challenge_service.list_submissions(session, ch.id, member, now=later)
    [sub] = listing.submissions
    assert sub.is_from_tagged_post is True
    assert sub.source_post_id is None
    assert sub.source_post_deleted is True


@pytest.mark.asyncio
async def test_removal_request_only_after_end(session, community, member):
    ch = await _challenge(session, community)
    await post_service.create_post(session, member, _tagged(ch.id))
    await session.commit()
    sub_id = await session.scalar(select(ChallengeSubmission.id).where(ChallengeSubmission.post_id == ch.id))

    with pytest.raises(ValidationError):
        await challenge_service.request_removal(session, sub_id, member, "changed my mind")

    later = _now() + timedelta(days=4)
    req = await challenge_service.request_removal(session, sub_id, member, "changed my mind", now=later)
    await session.commit()
    with pytest.raises(Conflict):
        await challenge_service.request_removal(session, sub_id, member, now=later)

    pending = await challenge_service.list_removal_requests(session, ch.id, community)
    assert [r.id for r in pending] == [req.id]

    reviewed = await challenge_service.review_removal_request(session, req.id, community, "approved")
    await session.commit()
    assert reviewed.status == "approved"
    assert await _count(session, ChallengeSubmission, post_id=ch.id) == 0
    assert (await session.get(Post, ch.id)).type_data["submission_count"] == 0


@pytest.mark.asyncio
async def test_progress_challenge_via_api(client, auth, community, member):
    r = await client.post("/posts", json={
        "post_type": "challenge",
        "title": "Read two books",
        "challenge_type": "progress",
        "submission_type": "text",
        "target_count": 2,
        "max_submissions_per_user": 3,
        "expires_at": (_now() + timedelta(days=7)).isoformat(),
    }, headers=auth(community))
    assert r.status_code == 201, r.text
    ch = r.json()

    r = await client.post(f"/posts/{ch['id']}/challenge-submissions", json={"content": "book one"}, headers=auth(member))
    assert r.status_code == 400
    assert r.json()["detail"] == "You must join the challenge first"

    assert (await client.post(f"/posts/{ch['id']}/join", headers=auth(member))).status_code == 201
    r = await client.post(f"/posts/{ch['id']}/join", headers=auth(member))
    assert r.status_code == 409

    url = f"/posts/{ch['id']}/challenge-submissions"
    one = (await client.post(url, json={"content": "book one"}, headers=auth(member))).json()
    assert one["status"] == "pending"
    parts = (await client.get(f"/posts/{ch['id']}/participants")).json()
    assert parts[0]["progress"] == 50 and parts[0]["status"] == "in_progress"

    await client.post(url, json={"content": "book two"}, headers=auth(member))
    parts = (await client.get(f"/posts/{ch['id']}/participants")).json()
    assert parts[0]["progress"] == 100 and parts[0]["status"] == "completed"
    assert (await client.get(f"/posts/{ch['id']}")).json()["type_data"]["completed_count"] == 1

    r = await client.patch(f"/challenge-submissions/{one['id']}/status", json={"status": "rejected"}, headers=auth(community))
    assert r.status_code == 200
    parts = (await client.get(f"/posts/{ch['id']}/participants")).json()
    assert parts[0]["progress"] == 50 and parts[0]["status"] == "in_progress"
    data = (await client.get(f"/posts/{ch['id']}")).json()["type_data"]
    assert data["completed_count"] == 0
    assert data["submission_count"] == 2


@pytest.mark.asyncio
async def test_submission_type_must_match(client, auth, community, member):
    ch = (await client.post("/posts", json={"post_type": "challenge", "title": "Photo"}, headers=auth(community))).json()
    await client.post(f"/posts/{ch['id']}/join", headers=auth(member))
    r = await client.post(f"/posts/{ch['id']}/challenge-submissions", json={"content": "words"}, headers=auth(member))
    assert r.status_code == 400
    assert r.json()["detail"] == "This challenge requires image submissions"


@pytest.mark.asyncio
async def test_hidden_proofs_and_likes(client, auth, community, member, other_member):
    ch = (await client.post("/posts", json={
        "post_type": "challenge", "title": "Secret", "submission_type": "any",
        "require_approval": False, "show_proofs_immediately": False,
    }, headers=auth(community))).json()
    await client.post(f"/posts/{ch['id']}/join", headers=auth(member))
    sub = (await client.post(f"/posts/{ch['id']}/challenge-submissions", json={"content": "done"}, headers=auth(member))).json()
    url = f"/posts/{ch['id']}/challenge-submissions"

    assert (await client.get(url)).json()["submissions"] == []
    assert (await client.get(url, headers=auth(other_member))).json()["submissions"] == []
    own = (await client.get(url, headers=auth(member))).json()["submissions"]
    assert own[0]["is_own_submission"] is True
    host = (await client.get(url, headers=auth(community))).json()
    assert host["is_author"] is True and len(host["submissions"]) == 1

    like = f"/challenge-submissions/{sub['id']}/like"
    assert (await client.post(like, headers=auth(other_member))).json() == {"liked": True, "like_count": 1}
    assert (await client.post(like, headers=auth(other_member))).status_code == 409
    assert (await client.delete(like, headers=auth(other_member))).json() == {"liked": False, "like_count": 0}
    assert (await client.delete(like, headers=auth(other_member))).status_code == 400


@pytest.mark.asyncio
async def test_feature_toggle_and_leave(client, auth, community, member):
    ch = (await client.post("/posts", json={
        "post_type": "challenge", "title": "Any", "submission_type": "any", "require_approval": False,
    }, headers=auth(community))).json()
    await client.post(f"/posts/{ch['id']}/join", headers=auth(member))
    sub = (await client.post(f"/posts/{ch['id']}/challenge-submissions", json={"content": "hi"}, headers=auth(member))).json()

    r = await client.patch(f"/challenge-submissions/{sub['id']}/feature", headers=auth(member))
    assert r.status_code == 403
    r = await client.patch(f"/challenge-submissions/{sub['id']}/feature", headers=auth(community))
    assert r.json()["is_featured"] is True and r.json()["status"] == "featured"
    featured = (await client.get(f"/posts/{ch['id']}/challenge-submissions", params={"filter": "featured"})).json()
    assert len(featured["submissions"]) == 1

    assert (await client.delete(f"/posts/{ch['id']}/join", headers=auth(member))).status_code == 200
    data = (await client.get(f"/posts/{ch['id']}")).json()["type_data"]
    assert data["participant_count"] == 0
    assert data["submission_count"] == 0
    assert (await client.delete(f"/posts/{ch['id']}/join", headers=auth(member))).status_code == 400


@pytest.mark.asyncio
async def test_tag_via_api_uses_camel_case_field(client, auth, community, member):
    ch = (await client.post("/posts", json={"post_type": "challenge", "title": "Tag me"}, headers=auth(community))).json()
    r = await client.post("/posts", json={
        "post_type": "media",
        "media_urls": ["a.jpg"],
        "taggedEntities": [{"id": ch["id"], "type": "challenge"}, {"id": 7, "type": "member"}],
    }, headers=auth(member))
    assert r.status_code == 201, r.text
    assert r.json()["linked_challenge_id"] == ch["id"]
    listing = (await client.get(f"/posts/{ch['id']}/challenge-submissions")).json()
    assert listing["submissions"][0]["is_from_tagged_post"] is True


@pytest.mark.asyncio
async def test_only_communities_host_challenges(client, auth):
    r = await client.post("/posts", json={"post_type": "challenge", "title": "x"}, headers=auth(Actor(4, "member")))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_failed_source_link_keeps_submission(session, community, member):
    ch = await _challenge(session, community)
    await session.execute(text(
        "CREATE TRIGGER block_sources BEFORE INSERT ON challenge_submission_sources "
        "BEGIN SELECT RAISE(ABORT, 'blocked'); END"
    ))
    await session.commit()

    post = await post_service.create_post(session, member, _tagged(ch.id))
    await session.commit()
    await session.refresh(post)

    assert post.linked_challenge_id == ch.id
    assert await _count(session, ChallengeSubmission, post_id=ch.id) == 1
    assert await _count(session, ChallengeSubmissionSource) == 0
    assert (await session.get(Post, ch.id)).type_data["submission_count"] == 1


@pytest.mark.asyncio
async def test_tagging_progress_challenge_tracks_progress_and_deletion(session, community, member):
    ch = await _challenge(session, community, challenge_type="progress", target_count=2)

    first = await post_service.create_post(session, member, _tagged(ch.id))
    await session.commit()
    part = await session.scalar(select(ChallengeParticipation).where(ChallengeParticipation.post_id == ch.id))
    assert (part.progress, part.status) == (50, "in_progress")

    await post_service.create_post(session, member, _tagged(ch.id))
    await session.commit()
    assert (part.progress, part.status) == (100, "completed")
    assert part.completed_at is not None
    assert (await session.get(Post, ch.id)).type_data["completed_count"] == 1

    await post_service.delete_post(session, first.id, member)
    await session.commit()
    assert (part.progress, part.status) == (50, "in_progress")
    assert part.completed_at is None
    data = (await session.get(Post, ch.id)).type_data
    assert data["completed_count"] == 0
    assert data["submission_count"] == 1


@pytest.mark.asyncio
async def test_self_reported_progress_and_completion(client, auth, community, member):
    ch = (await client.post("/posts", json={"post_type": "challenge", "title": "Plank"}, headers=auth(community))).json()
    url = f"/posts/{ch['id']}/progress"

    r = await client.patch(url, json={"progress": 10}, headers=auth(member))
    assert r.status_code == 404
    assert r.json()["detail"] == "Not participating in this challenge"

    await client.post(f"/posts/{ch['id']}/join", headers=auth(member))
    r = await client.patch(url, json={"progress": 150}, headers=auth(member))
    assert r.status_code == 400
    assert r.json()["detail"] == "Progress must be between 0 and 100"

    r = await client.patch(url, json={"progress": 40}, headers=auth(member))
    assert r.status_code == 200, r.text
    assert (r.json()["progress"], r.json()["status"]) == (40, "in_progress")

    r = await client.patch(url, json={"progress": 100}, headers=auth(member))
    assert r.json()["status"] == "completed"
    assert r.json()["completed_at"] is not None
    assert (await client.get(f"/posts/{ch['id']}")).json()["type_data"]["completed_count"] == 1

    r = await client.patch(url, json={"progress": 60}, headers=auth(member))
    assert r.json()["status"] == "in_progress"
    assert r.json()["completed_at"] is None
    assert (await client.get(f"/posts/{ch['id']}")).json()["type_data"]["completed_count"] == 0

    r = await client.post(f"/posts/{ch['id']}/complete", headers=auth(member))
    assert r.status_code == 200
    assert (r.json()["progress"], r.json()["status"]) == (100, "completed")
    assert (await client.get(f"/posts/{ch['id']}")).json()["type_data"]["completed_count"] == 1

    r = await client.post(f"/posts/{ch['id']}/complete", headers=auth(member))
    assert r.status_code == 400
    assert r.json()["detail"] == "Already completed"


@pytest.mark.asyncio
async def test_progress_challenge_rejects_manual_progress(session, community, member):
    ch = await _challenge(session, community, challenge_type="progress", target_count=3)
    await challenge_service.join(session, ch.id, member)
    await session.commit()
    with pytest.raises(ValidationError):
        await challenge_service.update_progress(session, ch.id, member, 50)
    with pytest.raises(ValidationError):
        await challenge_service.mark_complete(session, ch.id, member)


@pytest.mark.asyncio
async def test_ended_challenge_rejects_completion(session, community, member):
    ch = await _challenge(session, community)
    await challenge_service.join(session, ch.id, member)
    await session.commit()
    later = _now() + timedelta(days=4)
    with pytest.raises(ValidationError):
        await challenge_service.mark_complete(session, ch.id, member, now=later)


@pytest.mark.asyncio
async def test_approving_featured_submission_keeps_it_featured(client, auth, community, member):
    ch = (await client.post("/posts", json={
        "post_type": "challenge", "title": "Any", "submission_type": "any", "require_approval": False,
    }, headers=auth(community))).json()
    await client.post(f"/posts/{ch['id']}/join", headers=auth(member))
    sub = (await client.post(f"/posts/{ch['id']}/challenge-submissions", json={"content": "hi"}, headers=auth(member))).json()
    await client.patch(f"/challenge-submissions/{sub['id']}/feature", headers=auth(community))

    url = f"/challenge-submissions/{sub['id']}/status"
    r = await client.patch(url, json={"status": "approved"}, headers=auth(community))
    assert (r.json()["status"], r.json()["is_featured"]) == ("featured", True)

    r = await client.patch(url, json={"status": "rejected"}, headers=auth(community))
    assert (r.json()["status"], r.json()["is_featured"]) == ("rejected", False)
