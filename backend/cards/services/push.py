from __future__ import annotations
import httpx
import structlog
from cards.config import settings

log = structlog.get_logger()


class GatewayNotConfigured(Exception):
    pass


async def send_push(
    recipient_id: int,
    recipient_type: str,
    title: str,
    body: str,
    data: dict | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> None:
    """
    Hand one notification to the push gateway.
    Device-token lookup and provider fan-out are the gateway's job.
    Raises on transport errors and non-2xx responses; callers decide what to swallow.
    """
    if not settings.push_gateway_url:
        raise GatewayNotConfigured("PUSH_GATEWAY_URL is not set")
    payload = {
        "recipient_id": recipient_id,
        "recipient_type": recipient_type,
        "title": title,
        "body": body,
        "data": data or {},
    }
    if client is None:
        async with httpx.AsyncClient(timeout=settings.push_gateway_timeout_seconds) as ac:
            r = await ac.post(settings.push_gateway_url, json=payload)
    else:
        r = await client.post(settings.push_gateway_url, json=payload)
    r.raise_for_status()
    log.info("push.sent", recipient_id=recipient_id, recipient_type=recipient_type, kind=(data or {}).get("type"))
