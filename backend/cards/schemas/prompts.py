from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, List
from uuid import UUID
from datetime import datetime

PromptSubmissionStatus = Literal["pending", "approved", "featured", "rejected"]


class PromptSubmissionCreate(BaseModel):
    content: str | None = None
    media_urls: List[str] = Field(default_factory=list)


class PromptModeration(BaseModel):
    status: Literal["approved", "rejected", "featured"]


class PromptReplyCreate(BaseModel):
    content: str | None = None
    parent_reply_id: UUID | None = None


class PromptSubmissionPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    author_id: int
    author_type: str
    content: str | None
    media_urls: List[str] | None
    status: PromptSubmissionStatus
    is_pinned: bool
    reply_count: int = 0
    moderated_by: int | None
    moderated_at: datetime | None
    created_at: datetime


class PromptReplyPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    submission_id: UUID
    parent_reply_id: UUID | None
    author_id: int
    author_type: str
    content: str
    reply_count: int
    is_hidden: bool
    created_at: datetime
