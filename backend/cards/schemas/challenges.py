from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, List
from uuid import UUID
from datetime import datetime

ParticipationStatus = Literal["joined", "in_progress", "completed"]
ChallengeSubmissionStatus = Literal["pending", "approved", "featured", "rejected"]


class ChallengeSubmissionCreate(BaseModel):
    content: str | None = None
    media_urls: List[str] = Field(default_factory=list)
    video_url: str | None = None
    video_thumbnail: str | None = None


class ChallengeModeration(BaseModel):
    status: Literal["approved", "rejected"]


class ProgressUpdate(BaseModel):
    progress: int


class RemovalRequestCreate(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class RemovalReview(BaseModel):
    status: Literal["approved", "rejected"]


class ParticipationPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    participant_id: int
    participant_type: str
    status: ParticipationStatus
    progress: int
    is_highlighted: bool
    completed_at: datetime | None
    created_at: datetime


class ChallengeSubmissionPublic(BaseModel):
    id: UUID
    post_id: UUID
    participation_id: UUID
    participant_id: int
    participant_type: str
    submission_type: str
    status: ChallengeSubmissionStatus
    content: str | None
    media_urls: List[str] = Field(default_factory=list)
    video_url: str | None
    video_thumbnail: str | None
    is_featured: bool
    like_count: int
    has_liked: bool = False
    is_own_submission: bool = False
    source_post_id: UUID | None = None
    is_from_tagged_post: bool = False
    source_post_deleted: bool = False
    created_at: datetime


class ChallengeSubmissionList(BaseModel):
    submissions: List[ChallengeSubmissionPublic]
    proofs_visible: bool
    is_author: bool
    is_expired: bool
    expires_at: datetime | None


class LikeResult(BaseModel):
    liked: bool
    like_count: int


class RemovalRequestPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    submission_id: UUID | None
    requester_id: int
    requester_type: str
    reason: str | None
    status: Literal["pending", "approved", "rejected"]
    reviewed_by: int | None
    reviewed_at: datetime | None
    created_at: datetime
