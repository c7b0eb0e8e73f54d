from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, List
from uuid import UUID
from datetime import datetime


class ExtendRequest(BaseModel):
    new_end_time: datetime
    reason: str | None = Field(default=None, max_length=500)


class ExtendResult(BaseModel):
    success: bool = True
    message: str = "Deadline extended successfully"
    new_end_time: datetime
    extension_count: int


class CanExtendResult(BaseModel):
    allowed: bool
    reason: str | None = None
    extension_count: int
    max_extensions: int | None = None


class ExtensionPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    card_type: str
    original_end_time: datetime | None
    new_end_time: datetime
    extended_by_id: int
    extended_by_type: str
    reason: str | None
    created_at: datetime


class ExtensionHistory(BaseModel):
    extensions: List[ExtensionPublic]
    count: int


class CloseResult(BaseModel):
    success: bool = True
    message: str = "Opportunity closed successfully"
    closed_at: datetime
    closure_type: Literal["manual", "automatic"]
