from __future__ import annotations
from fastapi import APIRouter, Depends, Body
from sqlalchemy.ext.asyncio import AsyncSession
from cards.db import get_session
from cards.auth_deps import get_current_actor, get_optional_actor
from cards.schemas.posts import PostCreate, PostPublic
from cards.services import posts as post_service
from cards.services.notifications import commit_and_dispatch
from cards.services.store import get_post_or_404

router = APIRouter(prefix="/posts", tags=["posts"])

@router.post("", response_model=PostPublic, status_code=201)
async def create_post(
    payload: PostCreate = Body(...),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    post = await post_service.create_post(session, actor, payload)
    await commit_and_dispatch(session)
    return await post_service.public_view(session, post, actor)

@router.get("/{post_id}", response_model=PostPublic)
async def get_post(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_optional_actor)):
    post = await get_post_or_404(session, post_id)
    return await post_service.public_view(session, post, actor)

@router.delete("/{post_id}")
async def delete_post(post_id: str, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    await post_service.delete_post(session, post_id, actor)
    await commit_and_dispatch(session)
    return {"success": True, "message": "Post deleted"}
