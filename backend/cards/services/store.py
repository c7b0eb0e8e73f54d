"""Loading, locking and typed ``type_data`` access shared by every card engine."""
from __future__ import annotations
import uuid
from typing import TypeVar
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cards.auth_deps import Actor
from cards.errors import AuthorizationDenied, NotFound, ValidationError
from cards.models.post import Post
from cards.schemas.type_data import parse_type_data, TypeData

T = TypeVar("T", bound=TypeData)

_NOT_FOUND = {
    "poll": "Poll not found",
    "prompt": "Prompt not found",
    "qna": "Q&A not found",
    "challenge": "Challenge not found",
    "opportunity": "Opportunity not found",
}


def _parse_id(post_id) -> uuid.UUID:
    if isinstance(post_id, uuid.UUID):
        return post_id
    try:
        return uuid.UUID(str(post_id))
    except ValueError:
        raise NotFound("Post not found")


async def get_post_or_404(session: AsyncSession, post_id, post_type: str | None = None) -> Post:
    post = await session.get(Post, _parse_id(post_id))
    if post is None or (post_type is not None and post.post_type != post_type):
        raise NotFound(_NOT_FOUND.get(post_type, "Post not found"))
    return post


async def lock_post(session: AsyncSession, post_id, post_type: str | None = None) -> Post:
    """Load the post with a row lock; counter updates go through here so concurrent writers serialise."""
    post = (await session.execute(
        select(Post)
        .where(Post.id == _parse_id(post_id))
        .with_for_update()
        .execution_options(populate_existing=True)
    )).scalar_one_or_none()
    if post is None or (post_type is not None and post.post_type != post_type):
        raise NotFound(_NOT_FOUND.get(post_type, "Post not found"))
    return post


def read_type_data(post: Post, model: type[T]) -> T:
    data = parse_type_data(post.post_type, post.type_data)
    if not isinstance(data, model):
        raise ValidationError(f"Post is not a {model.__name__}")
    return data


def write_type_data(post: Post, data: TypeData) -> None:
    # Fresh dict so the JSON column is flagged dirty
    post.type_data = data.model_dump(mode="json")


def require_author(post: Post, actor: Actor, message: str = "Only the author can do this") -> None:
    if not actor.owns(post.author_id, post.author_type):
        raise AuthorizationDenied(message)


def require_community(actor: Actor, what: str) -> None:
    if actor.type != "community":
        raise AuthorizationDenied(f"Only communities can create {what}")


def round_pct(numerator: int, denominator: int) -> int:
    """Percentage rounded half up."""
    if denominator <= 0:
        return 0
    return int(numerator * 100 / denominator + 0.5)
