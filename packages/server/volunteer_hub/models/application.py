"""Application ticket model: one row per (user, event, work area)."""

from datetime import datetime
from typing import List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, VersionMixin, utcnow

_LIVE_TICKET = sa.text("status != 'withdrawn'")


class Application(UUIDMixin, VersionMixin, SQLModel, table=True):
    __tablename__ = "applications"
    __table_args__ = (
        sa.Index(
            "uq_applications_live_ticket",
            "user_id",
            "event_id",
            "assigned_work_area_id",
            unique=True,
            sqlite_where=_LIVE_TICKET,
            postgresql_where=_LIVE_TICKET,
        ),
    )

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    event_id: uuid.UUID = Field(foreign_key="events.id", nullable=False, index=True)
    # str ids; a ticket carries exactly one preferred area
    preferred_work_area_ids: List[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    assigned_work_area_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="work_areas.id", index=True
    )
    status: str = Field(nullable=False, default="pending", index=True)  # pending | approved | rejected | withdrawn
    applied_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    answers: dict = Field(default_factory=dict, sa_type=sa.JSON, nullable=False)
    admin_note: Optional[str] = None
    rejection_message: Optional[str] = None
