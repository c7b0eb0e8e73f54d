from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt
from cards.config import settings

ACCESS_TTL_MIN = 15

def make_access_token(actor_id: int, actor_type: str, ttl_min: int = ACCESS_TTL_MIN) -> str:
    """Mint an access token. Production tokens come from the auth service; this is used by tests and tooling."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(actor_id),
        "actor_type": actor_type,
        "type": "access",
        "iat": now.timestamp(),
        "exp": int((now + timedelta(minutes=ttl_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)

def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
