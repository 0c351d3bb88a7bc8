"""
Event API endpoints.

POST   /api/v1/orgs/{orgId}/events        — Create an event (leaders)
GET    /api/v1/events                     — Events of the caller's organizations
GET    /api/v1/events/{eventId}           — Event detail with work areas and questions
GET    /api/v1/events/{eventId}/work-areas — Work areas with approved counts
POST   /api/v1/events/{eventId}/work-areas — Add a work area (leaders)
DELETE /api/v1/work-areas/{workAreaId}     — Delete an unused work area (leaders)
POST   /api/v1/events/{eventId}/applications — Apply to work areas of an event
GET    /api/v1/events/{eventId}/applications — Tickets for an event (admins)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.api.v1.applications import to_application_read
from volunteer_hub.core.auth import AuthenticatedUser, get_authenticated_user
from volunteer_hub.core.database import get_session
from volunteer_hub.services import applications as application_service
from volunteer_hub.services import events as event_service
from volunteer_hub_shared.schemas.applications import (
    ApplicationListResponse,
    ApplyRequest,
    ApplyResponse,
)
from volunteer_hub_shared.schemas.common import ApplicationStatus
from volunteer_hub_shared.schemas.events import (
    EventCreateRequest,
    EventDetail,
    EventListResponse,
    EventRead,
    WorkAreaCreate,
    WorkAreaListResponse,
    WorkAreaRead,
)

router = APIRouter()


@router.post("/orgs/{orgId}/events", response_model=EventDetail, status_code=201)
async def create_event(
    orgId: uuid.UUID,
    body: EventCreateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    event = await event_service.create_event(auth.caller, orgId, body, session)
    detail = await event_service.get_event_detail(auth.caller, event.id, session)
    return EventDetail(**detail)


@router.get("/events", response_model=EventListResponse)
async def list_events(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    events = await event_service.list_events(auth.caller, session)
    return EventListResponse(data=[EventRead.model_validate(e) for e in events])


@router.get("/events/{eventId}", response_model=EventDetail)
async def get_event(
    eventId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Event detail; each work area reports its approved count alongside capacity."""
    detail = await event_service.get_event_detail(auth.caller, eventId, session)
    return EventDetail(**detail)


@router.get("/events/{eventId}/work-areas", response_model=WorkAreaListResponse)
async def list_work_areas(
    eventId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    areas = await event_service.list_work_areas(auth.caller, eventId, session)
    return WorkAreaListResponse(data=[WorkAreaRead(**a) for a in areas])


@router.post("/events/{eventId}/work-areas", response_model=WorkAreaRead, status_code=201)
async def add_work_area(
    eventId: uuid.UUID,
    body: WorkAreaCreate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    area = await event_service.add_work_area(auth.caller, eventId, body, session)
    return WorkAreaRead(
        id=area.id,
        name=area.name,
        description=area.description,
        capacity=area.capacity,
    )


@router.delete("/work-areas/{workAreaId}", status_code=204)
async def delete_work_area(
    workAreaId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Refused with 409 while the area still has live applications."""
    await event_service.delete_work_area(auth.caller, workAreaId, session)


@router.post("/events/{eventId}/applications", response_model=ApplyResponse, status_code=201)
async def apply(
    eventId: uuid.UUID,
    body: ApplyRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Apply to one or more work areas. Areas already applied to are reported as skipped."""
    result = await application_service.apply_to_event(
        auth.caller, eventId, body.work_area_ids, body.answers, session
    )
    return ApplyResponse(
        created=[to_application_read(a) for a in result.created],
        skipped_work_area_ids=result.skipped_work_area_ids,
    )


@router.get("/events/{eventId}/applications", response_model=ApplicationListResponse)
async def list_event_applications(
    eventId: uuid.UUID,
    status: Optional[ApplicationStatus] = None,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    apps = await application_service.list_event_applications(
        auth.caller, eventId, session, status=status
    )
    return ApplicationListResponse(data=[to_application_read(a) for a in apps])
