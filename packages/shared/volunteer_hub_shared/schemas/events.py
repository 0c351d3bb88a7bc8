"""Event, work area and question schemas."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import UUID4, BaseModel, Field, field_validator, model_validator

from .common import QuestionType


class WorkAreaCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    capacity: int = Field(default=0, ge=0)


class QuestionCreate(BaseModel):
    question_text: str = Field(min_length=1, max_length=500)
    question_type: QuestionType = QuestionType.TEXT
    options: Optional[str] = Field(
        default=None,
        description="Comma separated choices for dropdown/checkbox questions",
    )
    is_required: bool = False


class EventCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime
    work_areas: List[WorkAreaCreate] = Field(default_factory=list)
    questions: List[QuestionCreate] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        """Timestamps without an offset are read as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_window(self) -> "EventCreateRequest":
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class WorkAreaRead(BaseModel):
    id: UUID4
    name: str
    description: Optional[str] = None
    capacity: int
    approved_count: int = 0


class QuestionRead(BaseModel):
    id: UUID4
    question_text: str
    question_type: QuestionType
    options: Optional[str] = None
    is_required: bool


class EventRead(BaseModel):
    id: UUID4
    org_id: UUID4
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime

    model_config = {"from_attributes": True}


class EventDetail(EventRead):
    org_name: str
    work_areas: List[WorkAreaRead] = Field(default_factory=list)
    questions: List[QuestionRead] = Field(default_factory=list)


class EventListResponse(BaseModel):
    data: List[EventRead]


class WorkAreaListResponse(BaseModel):
    data: List[WorkAreaRead]
