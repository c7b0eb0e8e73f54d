"""Typed views of ``Post.type_data``, one model per ``post_type``.

The column is a JSON document; these models are the only way engines read or
write it, so each subtype only ever sees its own fields.
"""
from __future__ import annotations
from typing import Literal, List
from pydantic import BaseModel, ConfigDict, Field

SubmissionType = Literal["text", "image", "video"]
ChallengeType = Literal["single", "progress", "community"]


class TypeData(BaseModel):
    model_config = ConfigDict(extra="forbid")


class MediaData(TypeData):
    pass


class PollOption(TypeData):
    index: int
    text: str
    vote_count: int = Field(default=0, ge=0)


class PollData(TypeData):
    question: str
    options: List[PollOption]
    allow_multiple: bool = False
    show_results_before_vote: bool = False
    total_votes: int = Field(default=0, ge=0)


class PromptData(TypeData):
    prompt_text: str
    submission_type: SubmissionType = "text"
    max_length: int = Field(default=500, ge=1)
    require_approval: bool = True
    submission_count: int = Field(default=0, ge=0)
    featured_submission_ids: List[str] = Field(default_factory=list)


class ChallengeData(TypeData):
    title: str
    description: str = ""
    challenge_type: ChallengeType = "single"
    submission_type: Literal["text", "image", "video", "any"] = "image"
    target_count: int = Field(default=1, ge=1)
    max_submissions_per_user: int = Field(default=1, ge=1)
    require_approval: bool = True
    show_proofs_immediately: bool = True
    participant_count: int = Field(default=0, ge=0)
    submission_count: int = Field(default=0, ge=0)
    completed_count: int = Field(default=0, ge=0)


class QnAData(TypeData):
    title: str
    description: str = ""
    allow_anonymous: bool = False
    max_questions_per_user: int = Field(default=1, ge=1)
    question_count: int = Field(default=0, ge=0)
    answered_count: int = Field(default=0, ge=0)


class OpportunityData(TypeData):
    title: str
    description: str = ""
    opportunity_types: List[str] = Field(default_factory=list)
    work_mode: Literal["remote", "onsite", "hybrid"] = "remote"
    payment_nature: Literal["paid", "unpaid", "negotiable"] = "paid"


TYPE_DATA_MODELS: dict[str, type[TypeData]] = {
    "media": MediaData,
    "poll": PollData,
    "prompt": PromptData,
    "qna": QnAData,
    "challenge": ChallengeData,
    "opportunity": OpportunityData,
}


def parse_type_data(post_type: str, raw: dict | None) -> TypeData:
    try:
        model = TYPE_DATA_MODELS[post_type]
    except KeyError:
        raise ValueError(f"unknown post_type {post_type!r}")
    return model.model_validate(raw or {})
