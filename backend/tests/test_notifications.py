from __future__ import annotations
import json
import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from cards.config import settings
from cards.jobs import deliver_notification as job
from cards.models.notification import NotificationOutbox
from cards.services import notifications
from cards.services.notifications import notify, commit_and_dispatch, retry_failed
from cards.services.push import send_push, GatewayNotConfigured


class FakeGateway:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def __call__(self, recipient_id, recipient_type, title, body, data=None):
        self.calls.append((recipient_id, recipient_type, title, body, data))
        if self.fail:
            raise httpx.ConnectError("gateway down")


class FakeQueue:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.jobs = []

    def enqueue(self, func, *args, **kwargs):
        if self.fail:
            raise RedisConnectionError("redis down")
        self.jobs.append((func, args))


@pytest.mark.asyncio
async def test_inline_delivery_marks_sent(session, monkeypatch):
    gateway = FakeGateway()
    monkeypatch.setattr(notifications, "send_push", gateway)
    row = notify(session, 5, "member", "Hi", "Body", {"type": "test"})
    await commit_and_dispatch(session)

    assert gateway.calls == [(5, "member", "Hi", "Body", {"type": "test"})]
    fresh = await session.get(NotificationOutbox, row.id)
    assert fresh.status == "sent"
    assert fresh.attempts == 1
    assert fresh.sent_at is not None


@pytest.mark.asyncio
async def test_failed_delivery_is_recorded_and_retried(session, monkeypatch):
    monkeypatch.setattr(notifications, "send_push", FakeGateway(fail=True))
    row = notify(session, 5, "member", "Hi", "Body")
    await commit_and_dispatch(session)
    assert row.status == "failed"
    assert row.last_error == "gateway down"

    monkeypatch.setattr(notifications, "send_push", FakeGateway())
    assert await retry_failed(session) == 1
    assert row.status == "sent"
    assert row.attempts == 2
    assert await retry_failed(session) == 0


@pytest.mark.asyncio
async def test_retry_gives_up_after_max_attempts(session, monkeypatch):
    monkeypatch.setattr(notifications, "send_push", FakeGateway(fail=True))
    notify(session, 5, "member", "Hi", "Body")
    await commit_and_dispatch(session)
    for _ in range(notifications.MAX_ATTEMPTS - 1):
        assert await retry_failed(session) == 1
    assert await retry_failed(session) == 0


@pytest.mark.asyncio
async def test_disabled_mode_skips_without_calling_gateway(session, monkeypatch):
    gateway = FakeGateway()
    monkeypatch.setattr(notifications, "send_push", gateway)
    monkeypatch.setattr(settings, "notifications_mode", "disabled")
    row = notify(session, 5, "member", "Hi", "Body")
    await commit_and_dispatch(session)
    assert row.status == "skipped"
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_queue_mode_enqueues_by_id(session, monkeypatch):
    queue = FakeQueue()
    monkeypatch.setattr(settings, "notifications_mode", "queue")
    monkeypatch.setattr(notifications, "_notification_queue", lambda: queue)
    row = notify(session, 5, "member", "Hi", "Body")
    await commit_and_dispatch(session)
    assert queue.jobs == [("cards.jobs.deliver_notification.deliver_notification", (str(row.id),))]
    assert row.status == "pending"


@pytest.mark.asyncio
async def test_queue_outage_marks_failed(session, monkeypatch):
    monkeypatch.setattr(settings, "notifications_mode", "queue")
    monkeypatch.setattr(notifications, "_notification_queue", lambda: FakeQueue(fail=True))
    row = notify(session, 5, "member", "Hi", "Body")
    await commit_and_dispatch(session)
    assert row.status == "failed"
    assert row.last_error.startswith("enqueue:")


@pytest.mark.asyncio
async def test_rolled_back_notification_is_not_sent(session, monkeypatch):
    gateway = FakeGateway()
    monkeypatch.setattr(notifications, "send_push", gateway)
    savepoint = await session.begin_nested()
    notify(session, 5, "member", "Hi", "Body")
    await session.flush()
    await savepoint.rollback()
    await commit_and_dispatch(session)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_worker_job_delivers_pending_row(session, session_factory, monkeypatch):
    gateway = FakeGateway()
    monkeypatch.setattr(notifications, "send_push", gateway)
    monkeypatch.setattr(job, "SessionLocal", session_factory)
    row = notify(session, 8, "venue", "Hi", "Body")
    await session.commit()

    await job._run(str(row.id))
    assert len(gateway.calls) == 1
    # Already delivered: a duplicate job is a no-op
    await job._run(str(row.id))
    assert len(gateway.calls) == 1

    await session.refresh(row)
    assert row.status == "sent"
    assert row.attempts == 1


@pytest.mark.asyncio
async def test_send_push_posts_to_gateway(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(202)

    monkeypatch.setattr(settings, "push_gateway_url", "http://push.test/send")
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as ac:
        await send_push(3, "member", "T", "B", {"type": "tag"}, client=ac)
    assert seen["url"] == "http://push.test/send"
    assert seen["body"] == {"recipient_id": 3, "recipient_type": "member", "title": "T", "body": "B", "data": {"type": "tag"}}


@pytest.mark.asyncio
async def test_send_push_raises_on_gateway_error(monkeypatch):
    monkeypatch.setattr(settings, "push_gateway_url", "http://push.test/send")
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503))) as ac:
        with pytest.raises(httpx.HTTPStatusError):
            await send_push(3, "member", "T", "B", client=ac)


@pytest.mark.asyncio
async def test_send_push_needs_gateway_url():
    with pytest.raises(GatewayNotConfigured):
        await send_push(3, "member", "T", "B")


@pytest.mark.asyncio
async def test_retry_sweep_job(session, session_factory, monkeypatch):
    from cards.jobs import retry_notifications

    monkeypatch.setattr(notifications, "send_push", FakeGateway(fail=True))
    notify(session, 5, "member", "Hi", "Body")
    await commit_and_dispatch(session)

    monkeypatch.setattr(notifications, "send_push", FakeGateway())
    monkeypatch.setattr(retry_notifications, "SessionLocal", session_factory)
    assert await retry_notifications._run() == 1
    assert await retry_notifications._run() == 0


@pytest.mark.asyncio
async def test_unexpected_gateway_errors_mark_row_failed(session, monkeypatch):
    async def bad_url(*args, **kwargs):
        raise httpx.InvalidURL("Invalid port: ':1'")

    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(notifications, "send_push", bad_url)
    first = notify(session, 5, "member", "Hi", "Body")
    await commit_and_dispatch(session)
    assert first.status == "failed"
    assert first.attempts == 1

    monkeypatch.setattr(notifications, "send_push", broken)
    second = notify(session, 5, "member", "Hi", "Body")
    await commit_and_dispatch(session)
    assert second.status == "failed"
    assert second.last_error == "RuntimeError: boom"


@pytest.mark.asyncio
async def test_malformed_gateway_url_does_not_fail_the_request(client, auth, community, member, monkeypatch):
    monkeypatch.setattr(settings, "push_gateway_url", "http://[::1")
    ch = (await client.post("/posts", json={
        "post_type": "challenge", "title": "Any", "submission_type": "any",
    }, headers=auth(community))).json()
    assert (await client.post(f"/posts/{ch['id']}/join", headers=auth(member))).status_code == 201

    r = await client.post(f"/posts/{ch['id']}/challenge-submissions", json={"content": "done"}, headers=auth(member))
    assert r.status_code == 201, r.text
    data = (await client.get(f"/posts/{ch['id']}")).json()["type_data"]
    assert data["submission_count"] == 1
