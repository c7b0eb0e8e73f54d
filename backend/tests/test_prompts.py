from __future__ import annotations
import pytest

from cards.auth_deps import Actor


async def _create_prompt(client, auth, community, **extra):
    payload = {"post_type": "prompt", "prompt_text": "Share your favourite spot", "max_length": 20}
    payload.update(extra)
    r = await client.post("/posts", json=payload, headers=auth(community))
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_prompt_is_featured_when_new(client, auth, community):
    prompt = await _create_prompt(client, auth, community)
    assert prompt["state"] == "featured"
    assert prompt["state_label"] == "Active"
    assert prompt["type_data"]["submission_count"] == 0


@pytest.mark.asyncio
async def test_submission_flow_with_approval(client, auth, community, member, other_member):
    prompt = await _create_prompt(client, auth, community)
    url = f"/posts/{prompt['id']}/submissions"

    r = await client.post(url, json={"content": "  the park  "}, headers=auth(member))
    assert r.status_code == 201, r.text
    sub = r.json()
    assert sub["status"] == "pending"
    assert sub["content"] == "the park"

    r = await client.post(url, json={"content": "again"}, headers=auth(member))
    assert r.status_code == 409
    assert r.json()["detail"] == "You have already submitted to this prompt"

    # Pending responses are only visible to the author
    r = await client.get(url, headers=auth(other_member))
    assert r.json() == []
    r = await client.get(url, params={"status": "pending"}, headers=auth(community))
    assert [s["id"] for s in r.json()] == [sub["id"]]

    r = await client.patch(f"/submissions/{sub['id']}/status", json={"status": "featured"}, headers=auth(member))
    assert r.status_code == 403
    r = await client.patch(f"/submissions/{sub['id']}/status", json={"status": "featured"}, headers=auth(community))
    assert r.status_code == 200
    assert r.json()["status"] == "featured"

    r = await client.get(url, headers=auth(other_member))
    assert [s["id"] for s in r.json()] == [sub["id"]]

    r = await client.get(f"/posts/{prompt['id']}")
    assert r.json()["type_data"]["featured_submission_ids"] == [sub["id"]]
    assert r.json()["type_data"]["submission_count"] == 1

    r = await client.get(f"/posts/{prompt['id']}/my-submission", headers=auth(member))
    assert r.json()["id"] == sub["id"]


@pytest.mark.asyncio
async def test_no_approval_means_auto_approved(client, auth, community, member):
    prompt = await _create_prompt(client, auth, community, require_approval=False)
    r = await client.post(f"/posts/{prompt['id']}/submissions", json={"content": "hi"}, headers=auth(member))
    assert r.json()["status"] == "approved"


@pytest.mark.asyncio
async def test_text_submission_limits(client, auth, community, member):
    prompt = await _create_prompt(client, auth, community)
    url = f"/posts/{prompt['id']}/submissions"
    r = await client.post(url, json={"content": "   "}, headers=auth(member))
    assert r.status_code == 400
    r = await client.post(url, json={"content": "x" * 21}, headers=auth(member))
    assert r.status_code == 400
    assert r.json()["detail"] == "Submission exceeds max length of 20 characters"


@pytest.mark.asyncio
async def test_image_prompt_requires_media(client, auth, community, member):
    prompt = await _create_prompt(client, auth, community, submission_type="image")
    r = await client.post(f"/posts/{prompt['id']}/submissions", json={"content": "no pic"}, headers=auth(member))
    assert r.status_code == 400
    assert r.json()["detail"] == "Media is required for this prompt"


@pytest.mark.asyncio
async def test_pin_toggles_and_is_exclusive(client, auth, community, member, other_member):
    prompt = await _create_prompt(client, auth, community, require_approval=False)
    url = f"/posts/{prompt['id']}/submissions"
    first = (await client.post(url, json={"content": "one"}, headers=auth(member))).json()
    second = (await client.post(url, json={"content": "two"}, headers=auth(other_member))).json()

    r = await client.patch(f"/submissions/{first['id']}/pin", headers=auth(community))
    assert r.json()["is_pinned"] is True
    r = await client.patch(f"/submissions/{second['id']}/pin", headers=auth(community))
    assert r.json()["is_pinned"] is True

    listing = (await client.get(url)).json()
    assert listing[0]["id"] == second["id"]
    assert [s["is_pinned"] for s in listing] == [True, False]

    r = await client.patch(f"/submissions/{second['id']}/pin", headers=auth(community))
    assert r.json()["is_pinned"] is False


@pytest.mark.asyncio
async def test_rejected_submission_cannot_be_pinned(client, auth, community, member):
    prompt = await _create_prompt(client, auth, community)
    sub = (await client.post(f"/posts/{prompt['id']}/submissions", json={"content": "meh"}, headers=auth(member))).json()
    await client.patch(f"/submissions/{sub['id']}/status", json={"status": "rejected"}, headers=auth(community))
    r = await client.patch(f"/submissions/{sub['id']}/pin", headers=auth(community))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_submitting_to_non_prompt(client, auth, member):
    post = (await client.post("/posts", json={"post_type": "media", "media_urls": ["a.jpg"]}, headers=auth(member))).json()
    r = await client.post(f"/posts/{post['id']}/submissions", json={"content": "x"}, headers=auth(Actor(5, "member")))
    assert r.status_code == 400
    assert r.json()["detail"] == "This post is not a prompt"


@pytest.mark.asyncio
async def test_featuring_twice_records_submission_once(client, auth, community, member):
    prompt = await _create_prompt(client, auth, community)
    sub = (await client.post(f"/posts/{prompt['id']}/submissions", json={"content": "pier"}, headers=auth(member))).json()
    for _ in range(2):
        r = await client.patch(f"/submissions/{sub['id']}/status", json={"status": "featured"}, headers=auth(community))
        assert r.status_code == 200
    data = (await client.get(f"/posts/{prompt['id']}")).json()["type_data"]
    assert data["featured_submission_ids"] == [sub["id"]]


@pytest.mark.asyncio
async def test_replies_thread_and_count(client, auth, community, member, other_member):
    prompt = await _create_prompt(client, auth, community, require_approval=False)
    sub = (await client.post(f"/posts/{prompt['id']}/submissions", json={"content": "the pier"}, headers=auth(member))).json()
    url = f"/submissions/{sub['id']}/replies"

    r = await client.post(url, json={"content": "   "}, headers=auth(other_member))
    assert r.status_code == 400
    assert r.json()["detail"] == "Reply content is required"

    top = await client.post(url, json={"content": " love it "}, headers=auth(other_member))
    assert top.status_code == 201, top.text
    top = top.json()
    assert top["content"] == "love it"
    assert top["parent_reply_id"] is None

    nested = (await client.post(url, json={"content": "thanks!", "parent_reply_id": top["id"]}, headers=auth(member))).json()
    assert nested["parent_reply_id"] == top["id"]

    listing = (await client.get(url)).json()
    assert [x["id"] for x in listing] == [top["id"], nested["id"]]
    assert listing[0]["reply_count"] == 1

    mine = (await client.get(f"/posts/{prompt['id']}/my-submission", headers=auth(member))).json()
    assert mine["reply_count"] == 1

    r = await client.post(url, json={"content": "x", "parent_reply_id": "00000000-0000-0000-0000-000000000000"},
                          headers=auth(member))
    assert r.status_code == 404
    assert r.json()["detail"] == "Parent reply not found"


@pytest.mark.asyncio
async def test_cannot_reply_to_pending_submission(client, auth, community, member, other_member):
    prompt = await _create_prompt(client, auth, community)
    sub = (await client.post(f"/posts/{prompt['id']}/submissions", json={"content": "hidden"}, headers=auth(member))).json()
    r = await client.post(f"/submissions/{sub['id']}/replies", json={"content": "hi"}, headers=auth(other_member))
    assert r.status_code == 400
    assert r.json()["detail"] == "Can only reply to approved submissions"


@pytest.mark.asyncio
async def test_prompt_author_hides_replies(client, auth, community, member, other_member):
    prompt = await _create_prompt(client, auth, community, require_approval=False)
    sub = (await client.post(f"/posts/{prompt['id']}/submissions", json={"content": "pier"}, headers=auth(member))).json()
    url = f"/submissions/{sub['id']}/replies"
    reply = (await client.post(url, json={"content": "rude"}, headers=auth(other_member))).json()

    r = await client.patch(f"/replies/{reply['id']}/hide", headers=auth(member))
    assert r.status_code == 403
    assert r.json()["detail"] == "Only the prompt author can hide replies"

    r = await client.patch(f"/replies/{reply['id']}/hide", headers=auth(community))
    assert r.json()["is_hidden"] is True

    assert (await client.get(url)).json() == []
    assert (await client.get(url, headers=auth(member))).json() == []
    assert len((await client.get(url, headers=auth(other_member))).json()) == 1
    assert len((await client.get(url, headers=auth(community))).json()) == 1

    r = await client.patch(f"/replies/{reply['id']}/hide", headers=auth(community))
    assert r.json()["is_hidden"] is False
    assert len((await client.get(url)).json()) == 1
