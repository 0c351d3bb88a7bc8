"""
Organization and membership schemas.

Covers: organization create/read, the organization catalog, membership
requests and decisions, role changes.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .common import DecisionOutcome, MembershipStatus, OrganizationRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, description="Unique organization name")
    description: Optional[str] = Field(None, max_length=5000)
    address: Optional[str] = Field(None, max_length=300)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)


class JoinByCodeRequest(BaseModel):
    invite_code: str = Field(..., min_length=4, max_length=64)


class MembershipDecisionRequest(BaseModel):
    outcome: DecisionOutcome
    reason: Optional[str] = Field(None, max_length=2000)


class RoleChangeRequest(BaseModel):
    role: OrganizationRole


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    invite_code: str
    description: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrgListItem(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    role: Optional[OrganizationRole] = None  # the requesting user's role, if any
    status: Optional[MembershipStatus] = None  # the requesting user's membership status

    model_config = {"from_attributes": True}


class OrgListResponse(BaseModel):
    data: list[OrgListItem]


class MembershipResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    org_id: uuid.UUID
    role: OrganizationRole
    status: MembershipStatus
    joined_at: datetime
    rejection_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class MemberListItem(MembershipResponse):
    name: str
    email: str
    phone_number: Optional[str] = None
    org_name: str


class MemberListResponse(BaseModel):
    data: list[MemberListItem]
