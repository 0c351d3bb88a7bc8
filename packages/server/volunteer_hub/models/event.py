"""Volunteering event model (owned by an organization)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Event(UUIDMixin, SQLModel, table=True):
    __tablename__ = "events"

    org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    end_time: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
