"""Work area model (a staffed area of an event)."""

from typing import Optional
import uuid

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class WorkArea(UUIDMixin, SQLModel, table=True):
    __tablename__ = "work_areas"
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="work_area_capacity_non_negative"),
    )

    event_id: uuid.UUID = Field(foreign_key="events.id", nullable=False, index=True)
    name: str = Field(nullable=False)
    description: Optional[str] = None
    capacity: int = Field(default=0, nullable=False)
