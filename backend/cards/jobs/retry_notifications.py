from __future__ import annotations
import asyncio
import structlog
from cards.db import SessionLocal
from cards.services.notifications import retry_failed

log = structlog.get_logger()

async def _run(limit: int = 100) -> int:
    async with SessionLocal() as session:
        picked = await retry_failed(session, limit)
    log.info("notification.retry_sweep", picked=picked)
    return picked

def retry_failed_notifications(limit: int = 100) -> int:
    # RQ / cron entry point (sync)
    return asyncio.run(_run(limit))
