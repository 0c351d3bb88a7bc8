"""User and profile schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import UUID4, BaseModel, EmailStr, Field

from .common import GlobalRole, MembershipStatus, OrganizationRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class UserCreateRequest(BaseModel):
    """Register a user record. Credentials are issued elsewhere."""
    email: EmailStr
    name: str = Field(min_length=1, max_length=200)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    credential_ref: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    """Fields a user may edit on their own record. Omitted fields are left unchanged."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone_number: Optional[str] = Field(default=None, max_length=50)


class GlobalRoleChangeRequest(BaseModel):
    role: GlobalRole


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    id: UUID4
    email: str
    name: str
    phone_number: Optional[str] = None
    global_role: GlobalRole
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileMembership(BaseModel):
    """One of the user's memberships as shown on their own profile."""
    membership_id: UUID4
    org_id: UUID4
    org_name: str
    role: OrganizationRole
    status: MembershipStatus
    rejection_reason: Optional[str] = None


class ProfileResponse(BaseModel):
    user: UserResponse
    memberships: List[ProfileMembership]


class UserListResponse(BaseModel):
    data: List[UserResponse]
