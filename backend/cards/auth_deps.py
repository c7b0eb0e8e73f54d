from __future__ import annotations
from dataclasses import dataclass
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from cards.errors import AuthenticationRequired
from cards.security import decode_token

ACTOR_TYPES = ("member", "community", "sponsor", "venue")

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    id: int
    type: str

    def owns(self, owner_id: int | None, owner_type: str | None) -> bool:
        return owner_id is not None and int(owner_id) == self.id and owner_type == self.type


def _actor_from_credentials(credentials: HTTPAuthorizationCredentials | None) -> Actor | None:
    if credentials is None:
        return None
    try:
        data = decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise AuthenticationRequired("Invalid token")
    if data.get("type") != "access":
        raise AuthenticationRequired("Wrong token type")
    actor_type = data.get("actor_type")
    try:
        actor_id = int(data.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationRequired("Invalid token subject")
    if actor_type not in ACTOR_TYPES:
        raise AuthenticationRequired("Invalid actor type")
    return Actor(id=actor_id, type=actor_type)


async def get_current_actor(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> Actor:
    actor = _actor_from_credentials(credentials)
    if actor is None:
        raise AuthenticationRequired()
    return actor


async def get_optional_actor(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> Actor | None:
    """Identity for read endpoints that also serve anonymous viewers."""
    return _actor_from_credentials(credentials)
