"""
Organization API endpoints.

GET    /api/v1/orgs            — Organization catalog
GET    /api/v1/orgs/mine       — Organizations the caller has a membership in
POST   /api/v1/orgs            — Create an organization (creator becomes owner)
GET    /api/v1/orgs/{orgId}    — Get organization details
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.auth import AuthenticatedUser, get_authenticated_user
from volunteer_hub.core.database import get_session
from volunteer_hub.services import organizations as org_service
from volunteer_hub_shared.schemas.organizations import (
    OrgCreateRequest,
    OrgListItem,
    OrgListResponse,
    OrgResponse,
)

router = APIRouter()


@router.get("", response_model=OrgListResponse)
async def list_orgs(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """The catalog of all organizations, for browsing before joining."""
    orgs = await org_service.list_organizations(session)
    return OrgListResponse(data=[OrgListItem.model_validate(o) for o in orgs])


@router.get("/mine", response_model=OrgListResponse)
async def list_my_orgs(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    items = await org_service.list_user_organizations(auth.user_id, session)
    return OrgListResponse(data=[OrgListItem(**item) for item in items])


@router.post("", response_model=OrgResponse, status_code=201)
async def create_org(
    body: OrgCreateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes its owner."""
    org = await org_service.create_organization(body, auth.user, session)
    return OrgResponse.model_validate(org)


@router.get("/{orgId}", response_model=OrgResponse)
async def get_org(
    orgId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.get_organization(orgId, session)
    return OrgResponse.model_validate(org)
