"""Post-commit notification outbox.

Engines call :func:`notify` inside their transaction; the row commits (or rolls
back) together with the change it describes. Routes finish with
:func:`commit_and_dispatch`, which commits and then delivers best-effort.
Nothing in delivery can raise back into the request.
"""
from __future__ import annotations
import uuid
from typing import Iterable
import httpx
import structlog
from redis import Redis
from redis.exceptions import RedisError
from rq import Queue
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cards.config import settings
from cards.db import utcnow
from cards.models.notification import NotificationOutbox
from cards.services.push import send_push, GatewayNotConfigured

log = structlog.get_logger()

PENDING_KEY = "pending_notifications"
MAX_ATTEMPTS = 5

_queue: Queue | None = None


def _notification_queue() -> Queue:
    global _queue
    if _queue is None:
        _queue = Queue("notifications", connection=Redis.from_url(settings.redis_url))
    return _queue


def notify(
    session: AsyncSession,
    recipient_id: int,
    recipient_type: str,
    title: str,
    body: str,
    data: dict | None = None,
) -> NotificationOutbox:
    row = NotificationOutbox(
        id=uuid.uuid4(),
        recipient_id=int(recipient_id),
        recipient_type=recipient_type,
        title=title,
        body=body,
        data=data or {},
        status="pending",
        attempts=0,
    )
    session.add(row)
    session.info.setdefault(PENDING_KEY, []).append(row.id)
    return row


async def deliver(row: NotificationOutbox) -> None:
    """Push one outbox row through the gateway and record the outcome on the row."""
    row.attempts = int(row.attempts or 0) + 1
    try:
        await send_push(row.recipient_id, row.recipient_type, row.title, row.body, row.data)
    except GatewayNotConfigured:
        row.status = "skipped"
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        row.status = "failed"
        row.last_error = str(e)[:500]
        log.warning("notification.delivery_failed", notification_id=str(row.id), attempts=row.attempts, error=str(e))
    else:
        row.status = "sent"
        row.sent_at = utcnow()
        row.last_error = None


async def dispatch(session: AsyncSession, notification_ids: Iterable[uuid.UUID]) -> None:
    mode = settings.notifications_mode
    for nid in notification_ids:
        row = await session.get(NotificationOutbox, nid)
        if row is None:
            # rolled back together with a savepoint
            continue
        try:
            if mode == "disabled":
                row.status = "skipped"
            elif mode == "queue":
                try:
                    _notification_queue().enqueue(
                        "cards.jobs.deliver_notification.deliver_notification", str(row.id), job_timeout=30
                    )
                except RedisError as e:
                    row.status = "failed"
                    row.last_error = f"enqueue: {e}"[:500]
                    log.warning("notification.enqueue_failed", notification_id=str(row.id), error=str(e))
            else:
                await deliver(row)
        except Exception as e:
            # the primary write has already committed
            row.status = "failed"
            row.last_error = f"{type(e).__name__}: {e}"[:500]
            log.error("notification.dispatch_failed", notification_id=str(row.id), exc_info=True)
    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.error("notification.outbox_update_failed", exc_info=True)


async def commit_and_dispatch(session: AsyncSession) -> None:
    await session.commit()
    pending = session.info.pop(PENDING_KEY, [])
    if pending:
        await dispatch(session, pending)


async def retry_failed(session: AsyncSession, limit: int = 100) -> int:
    """Re-dispatch failed rows that still have attempts left. Returns how many were picked up."""
    ids = (await session.execute(
        select(NotificationOutbox.id)
        .where(NotificationOutbox.status == "failed", NotificationOutbox.attempts < MAX_ATTEMPTS)
        .order_by(NotificationOutbox.created_at.asc())
        .limit(limit)
    )).scalars().all()
    if ids:
        await dispatch(session, ids)
    return len(ids)
