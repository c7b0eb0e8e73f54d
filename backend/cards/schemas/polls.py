from __future__ import annotations
from pydantic import BaseModel, Field, model_validator
from typing import List
from uuid import UUID
from datetime import datetime

from cards.schemas.type_data import PollOption


class VoteRequest(BaseModel):
    option_index: int | None = None
    option_indexes: List[int] | None = None

    @model_validator(mode="after")
    def one_of(self):
        if self.option_index is None and not self.option_indexes:
            raise ValueError("option_index is required")
        return self

    def indexes(self) -> list[int]:
        if self.option_indexes:
            # Duplicates in one request collapse to a single selection
            return sorted(set(self.option_indexes))
        return [self.option_index]


class VoteResult(BaseModel):
    success: bool = True
    message: str
    voted_indexes: List[int] = Field(default_factory=list)
    total_votes: int
    options: List[PollOption]


class OptionResult(BaseModel):
    index: int
    text: str
    vote_count: int | None
    percentage: int | None


class PollResults(BaseModel):
    post_id: UUID
    question: str
    options: List[OptionResult]
    total_votes: int | None
    has_voted: bool
    user_voted_indexes: List[int]
    is_ended: bool
    show_results: bool
    expires_at: datetime | None


class VoteStatus(BaseModel):
    has_voted: bool
    voted_indexes: List[int]
