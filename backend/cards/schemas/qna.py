from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, List
from uuid import UUID
from datetime import datetime


class QuestionCreate(BaseModel):
    content: str = Field(default="", max_length=2000)
    is_anonymous: bool = False


class AnswerCreate(BaseModel):
    content: str = Field(default="", max_length=5000)


class QuestionModeration(BaseModel):
    is_pinned: bool | None = None
    is_locked: bool | None = None
    is_hidden: bool | None = None


class ResolveRequest(BaseModel):
    question_id: UUID
    best_answer_id: UUID | None = None


class AnswerPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    question_id: UUID
    author_id: int
    author_type: str
    content: str
    is_best_answer: bool
    created_at: datetime


class QuestionPublic(BaseModel):
    id: UUID
    post_id: UUID
    # Null for anonymous questions
    author_id: int | None
    author_type: str | None
    content: str
    is_anonymous: bool
    is_pinned: bool
    is_locked: bool
    is_hidden: bool
    upvote_count: int
    has_upvoted: bool = False
    is_answered: bool
    answered_at: datetime | None
    resolved_at: datetime | None
    best_answer_id: UUID | None
    answers: List[AnswerPublic] = Field(default_factory=list)
    created_at: datetime


class UpvoteResult(BaseModel):
    upvoted: bool
    upvote_count: int


QuestionSort = Literal["top", "recent"]
QuestionFilter = Literal["all", "answered", "unanswered"]


class ExpertCreate(BaseModel):
    expert_id: int
    expert_type: str = Field(min_length=1, max_length=16)


class ExpertPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    post_id: UUID
    expert_id: int
    expert_type: str
    created_at: datetime
