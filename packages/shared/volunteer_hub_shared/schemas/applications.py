"""Application (ticket) workflow schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import UUID4, BaseModel, Field

from .common import ApplicationStatus, DecisionOutcome


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class ApplyRequest(BaseModel):
    """Apply to one or more work areas of an event. One ticket per area."""
    work_area_ids: List[UUID4] = Field(default_factory=list)
    answers: Dict[str, str] = Field(
        default_factory=dict,
        description="Free-text answers keyed by question id",
    )


class ApplicationDecisionRequest(BaseModel):
    outcome: DecisionOutcome
    rejection_message: Optional[str] = Field(None, max_length=2000)


class BulkDecisionRequest(ApplicationDecisionRequest):
    application_ids: List[UUID4] = Field(min_length=1)


class NoteRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=5000)


class BulkMessageRequest(BaseModel):
    application_ids: List[UUID4] = Field(min_length=1)
    subject: str = Field(min_length=1, max_length=300)
    message: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ApplicationRead(BaseModel):
    id: UUID4
    user_id: UUID4
    event_id: UUID4
    preferred_work_area_ids: List[UUID4]
    assigned_work_area_id: Optional[UUID4] = None
    status: ApplicationStatus
    applied_at: datetime
    answers: Dict[str, str] = Field(default_factory=dict)
    admin_note: Optional[str] = None
    rejection_message: Optional[str] = None


class ApplyResponse(BaseModel):
    created: List[ApplicationRead]
    skipped_work_area_ids: List[UUID4] = Field(default_factory=list)


class ApplicationListResponse(BaseModel):
    data: List[ApplicationRead]


class BulkDecisionResponse(BaseModel):
    changed: int


class BulkMessageResponse(BaseModel):
    recipients: int
