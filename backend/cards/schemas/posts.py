from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Annotated, Literal, List, Union
from uuid import UUID
from datetime import datetime

from cards.schemas.type_data import SubmissionType, ChallengeType

CardState = Literal["active", "ended", "featured", "evergreen", "open", "closed", "open_ended"]


class TaggedEntity(BaseModel):
    id: Union[int, str]
    type: str


class _PostCreateBase(BaseModel):
    caption: str | None = None
    media_urls: List[str] = Field(default_factory=list)
    video_url: str | None = None
    expires_at: datetime | None = None


class MediaPostCreate(_PostCreateBase):
    model_config = ConfigDict(populate_by_name=True)

    post_type: Literal["media"]
    tagged_entities: List[TaggedEntity] = Field(default_factory=list, alias="taggedEntities")


class PollCreate(_PostCreateBase):
    post_type: Literal["poll"]
    question: str = ""
    options: List[str] = Field(default_factory=list)
    allow_multiple: bool = False
    show_results_before_vote: bool = False


class PromptCreate(_PostCreateBase):
    post_type: Literal["prompt"]
    prompt_text: str = ""
    submission_type: SubmissionType = "text"
    max_length: int = Field(default=500, ge=1, le=5000)
    require_approval: bool = True


class QnACreate(_PostCreateBase):
    post_type: Literal["qna"]
    title: str = ""
    description: str = ""
    allow_anonymous: bool = False
    max_questions_per_user: int = Field(default=1, ge=1)


class ChallengeCreate(_PostCreateBase):
    post_type: Literal["challenge"]
    title: str = ""
    description: str = ""
    challenge_type: ChallengeType = "single"
    submission_type: Literal["text", "image", "video", "any"] = "image"
    target_count: int = Field(default=1, ge=1)
    max_submissions_per_user: int = Field(default=1, ge=1)
    require_approval: bool = True
    show_proofs_immediately: bool = True


class OpportunityCreate(_PostCreateBase):
    post_type: Literal["opportunity"]
    title: str = ""
    description: str = ""
    opportunity_types: List[str] = Field(default_factory=list)
    work_mode: Literal["remote", "onsite", "hybrid"] = "remote"
    payment_nature: Literal["paid", "unpaid", "negotiable"] = "paid"

    @field_validator("opportunity_types")
    @classmethod
    def strip_types(cls, v: list[str]):
        return [t.strip() for t in v if t and t.strip()]


PostCreate = Annotated[
    Union[MediaPostCreate, PollCreate, PromptCreate, QnACreate, ChallengeCreate, OpportunityCreate],
    Field(discriminator="post_type"),
]


class PostPublic(BaseModel):
    id: UUID
    post_type: str
    author_id: int
    author_type: str
    caption: str | None
    status: str
    media_urls: List[str]
    video_url: str | None
    tagged_entities: List[TaggedEntity] | None
    type_data: dict
    expires_at: datetime | None
    closed_at: datetime | None
    closure_type: str | None
    extension_count: int
    original_end_time: datetime | None
    extended_at: datetime | None
    linked_challenge_id: UUID | None
    created_at: datetime
    # Derived on every read
    state: CardState
    state_label: str
    interaction_disabled: bool
