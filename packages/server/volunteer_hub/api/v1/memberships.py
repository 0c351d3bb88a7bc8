"""
Membership API endpoints.

POST   /api/v1/orgs/join-by-code                   — Request membership by invite code
POST   /api/v1/orgs/{orgId}/join                   — Request membership
POST   /api/v1/orgs/{orgId}/leave                  — Leave an organization
GET    /api/v1/orgs/{orgId}/members                — List members (leaders)
PUT    /api/v1/orgs/{orgId}/members/{userId}/role  — Change a member's role (leaders)
DELETE /api/v1/orgs/{orgId}/members/{userId}       — Remove a member (leaders)
GET    /api/v1/memberships/pending                 — Pending requests the caller can decide
PUT    /api/v1/memberships/{id}/decision           — Approve or reject a request (leaders)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.auth import AuthenticatedUser, get_authenticated_user
from volunteer_hub.core.database import get_session
from volunteer_hub.services import memberships as membership_service
from volunteer_hub_shared.schemas.common import MembershipStatus
from volunteer_hub_shared.schemas.organizations import (
    JoinByCodeRequest,
    MemberListItem,
    MemberListResponse,
    MembershipDecisionRequest,
    MembershipResponse,
    RoleChangeRequest,
)

router = APIRouter()


@router.post("/orgs/join-by-code", response_model=MembershipResponse)
async def join_by_code(
    body: JoinByCodeRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    m = await membership_service.join_by_invite_code(auth.caller, body.invite_code, session)
    return MembershipResponse.model_validate(m)


@router.post("/orgs/{orgId}/join", response_model=MembershipResponse)
async def join_org(
    orgId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Request to join. A rejected or former member re-applies on the same record."""
    m = await membership_service.join_organization(auth.caller, orgId, session)
    return MembershipResponse.model_validate(m)


@router.post("/orgs/{orgId}/leave", response_model=MembershipResponse)
async def leave_org(
    orgId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    m = await membership_service.leave_organization(auth.caller, orgId, session)
    return MembershipResponse.model_validate(m)


@router.get("/orgs/{orgId}/members", response_model=MemberListResponse)
async def list_members(
    orgId: uuid.UUID,
    status: Optional[MembershipStatus] = None,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    items = await membership_service.list_organization_members(
        auth.caller, orgId, session, status=status
    )
    return MemberListResponse(data=[MemberListItem(**item) for item in items])


@router.put("/orgs/{orgId}/members/{userId}/role", response_model=MembershipResponse)
async def change_role(
    orgId: uuid.UUID,
    userId: uuid.UUID,
    body: RoleChangeRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Change a member's role. The last owner/organizer cannot be demoted."""
    m = await membership_service.change_member_role(
        auth.caller, userId, orgId, body.role, session
    )
    return MembershipResponse.model_validate(m)


@router.delete("/orgs/{orgId}/members/{userId}", response_model=MembershipResponse)
async def remove_member(
    orgId: uuid.UUID,
    userId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    m = await membership_service.remove_member(auth.caller, userId, orgId, session)
    return MembershipResponse.model_validate(m)


@router.get("/memberships/pending", response_model=MemberListResponse)
async def list_pending(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    items = await membership_service.list_pending_memberships(auth.caller, session)
    return MemberListResponse(data=[MemberListItem(**item) for item in items])


@router.put("/memberships/{membershipId}/decision", response_model=MembershipResponse)
async def decide(
    membershipId: uuid.UUID,
    body: MembershipDecisionRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    m = await membership_service.decide_membership(
        auth.caller, membershipId, body.outcome, session, reason=body.reason
    )
    return MembershipResponse.model_validate(m)
