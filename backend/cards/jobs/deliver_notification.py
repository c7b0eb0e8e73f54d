from __future__ import annotations
import asyncio
import uuid
from cards.db import SessionLocal
from cards.models.notification import NotificationOutbox
from cards.services.notifications import deliver

async def _run(notification_id: str):
    async with SessionLocal() as session:
        row = await session.get(NotificationOutbox, uuid.UUID(notification_id))
        if not row or row.status in ("sent", "skipped"):
            return
        await deliver(row)
        await session.commit()

def deliver_notification(notification_id: str):
    # RQ entry point (sync); run the async coroutine
    asyncio.run(_run(notification_id))
