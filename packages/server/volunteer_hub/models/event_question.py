"""Event questionnaire entry."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class EventQuestion(UUIDMixin, SQLModel, table=True):
    __tablename__ = "event_questions"

    event_id: uuid.UUID = Field(foreign_key="events.id", nullable=False, index=True)
    question_text: str = Field(nullable=False)
    question_type: str = Field(default="text", nullable=False)  # text | dropdown | checkbox
    options: Optional[str] = None  # comma separated, dropdown/checkbox only
    is_required: bool = Field(default=False, nullable=False)
