"""Event service: events, work areas and questionnaires."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from volunteer_hub.core.errors import NotFound, WorkAreaInUse
from volunteer_hub.core.permissions import Action, Caller, Resource, authorize
from volunteer_hub.models.application import Application
from volunteer_hub.models.event import Event
from volunteer_hub.models.event_question import EventQuestion
from volunteer_hub.models.organization import Organization
from volunteer_hub.models.work_area import WorkArea
from volunteer_hub_shared.schemas.common import ApplicationStatus
from volunteer_hub_shared.schemas.events import EventCreateRequest, WorkAreaCreate

log = structlog.get_logger()


async def create_event(
    caller: Caller,
    org_id: uuid.UUID,
    req: EventCreateRequest,
    session: AsyncSession,
) -> Event:
    org = await session.get(Organization, org_id)
    if not org:
        raise NotFound("Organization not found")
    authorize(caller, Action.MANAGE_EVENTS, Resource(kind="organization", org_id=org_id))

    event = Event(
        org_id=org_id,
        title=req.title,
        description=req.description,
        location=req.location,
        start_time=req.start_time,
        end_time=req.end_time,
    )
    session.add(event)
    await session.flush()

    for area in req.work_areas:
        session.add(WorkArea(
            event_id=event.id,
            name=area.name,
            description=area.description,
            capacity=area.capacity,
        ))
    for q in req.questions:
        session.add(EventQuestion(
            event_id=event.id,
            question_text=q.question_text,
            question_type=q.question_type.value,
            options=q.options,
            is_required=q.is_required,
        ))
    await session.flush()

    log.info(
        "event.created",
        event_id=str(event.id),
        org_id=str(org_id),
        work_areas=len(req.work_areas),
        by=str(caller.user_id),
    )
    return event


async def get_event(event_id: uuid.UUID, session: AsyncSession) -> Event:
    event = await session.get(Event, event_id)
    if not event:
        raise NotFound("Event not found")
    return event


async def get_work_areas(event_id: uuid.UUID, session: AsyncSession) -> list[WorkArea]:
    result = await session.execute(
        select(WorkArea).where(WorkArea.event_id == event_id).order_by(WorkArea.name)
    )
    return list(result.scalars().all())


async def get_questions(event_id: uuid.UUID, session: AsyncSession) -> list[EventQuestion]:
    result = await session.execute(
        select(EventQuestion).where(EventQuestion.event_id == event_id)
    )
    return list(result.scalars().all())


async def approved_counts(event_id: uuid.UUID, session: AsyncSession) -> dict[uuid.UUID, int]:
    """Approved tickets per assigned work area. Capacity is informational only."""
    result = await session.execute(
        select(Application.assigned_work_area_id, func.count())
        .where(
            Application.event_id == event_id,
            Application.status == ApplicationStatus.APPROVED.value,
        )
        .group_by(Application.assigned_work_area_id)
    )
    return {area_id: count for area_id, count in result.all() if area_id is not None}


async def _area_rows(event_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    counts = await approved_counts(event_id, session)
    return [
        {
            "id": a.id,
            "name": a.name,
            "description": a.description,
            "capacity": a.capacity,
            "approved_count": counts.get(a.id, 0),
        }
        for a in await get_work_areas(event_id, session)
    ]


async def list_work_areas(
    caller: Caller, event_id: uuid.UUID, session: AsyncSession
) -> list[dict]:
    """Work areas of an event with their approved counts."""
    event = await get_event(event_id, session)
    authorize(caller, Action.VIEW_EVENTS, Resource(kind="event", org_id=event.org_id))
    return await _area_rows(event_id, session)


async def add_work_area(
    caller: Caller,
    event_id: uuid.UUID,
    req: WorkAreaCreate,
    session: AsyncSession,
) -> WorkArea:
    event = await get_event(event_id, session)
    authorize(caller, Action.MANAGE_EVENTS, Resource(kind="event", org_id=event.org_id))

    area = WorkArea(
        event_id=event_id,
        name=req.name,
        description=req.description,
        capacity=req.capacity,
    )
    session.add(area)
    await session.flush()

    log.info("work_area.created", work_area_id=str(area.id), event_id=str(event_id), by=str(caller.user_id))
    return area


async def delete_work_area(
    caller: Caller, work_area_id: uuid.UUID, session: AsyncSession
) -> None:
    """Delete a work area that no live ticket points at.

    Withdrawn tickets are detached from the area rather than deleted.
    """
    area = await session.get(WorkArea, work_area_id)
    if not area:
        raise NotFound("Work area not found")
    event = await get_event(area.event_id, session)
    authorize(caller, Action.MANAGE_EVENTS, Resource(kind="event", org_id=event.org_id))

    result = await session.execute(
        select(func.count())
        .select_from(Application)
        .where(
            Application.assigned_work_area_id == work_area_id,
            Application.status != ApplicationStatus.WITHDRAWN.value,
        )
    )
    if result.scalar_one():
        raise WorkAreaInUse()

    await session.execute(
        update(Application)
        .where(Application.assigned_work_area_id == work_area_id)
        .values(assigned_work_area_id=None)
    )
    await session.delete(area)
    await session.flush()

    log.info("work_area.deleted", work_area_id=str(work_area_id), event_id=str(event.id), by=str(caller.user_id))


async def get_event_detail(
    caller: Caller, event_id: uuid.UUID, session: AsyncSession
) -> dict:
    event = await get_event(event_id, session)
    authorize(caller, Action.VIEW_EVENTS, Resource(kind="event", org_id=event.org_id))

    org = await session.get(Organization, event.org_id)
    questions = await get_questions(event_id, session)

    return {
        "id": event.id,
        "org_id": event.org_id,
        "org_name": org.name if org else "",
        "title": event.title,
        "description": event.description,
        "location": event.location,
        "start_time": event.start_time,
        "end_time": event.end_time,
        "work_areas": await _area_rows(event_id, session),
        "questions": [
            {
                "id": q.id,
                "question_text": q.question_text,
                "question_type": q.question_type,
                "options": q.options,
                "is_required": q.is_required,
            }
            for q in questions
        ],
    }


async def list_events(caller: Caller, session: AsyncSession) -> list[Event]:
    """Events of every organization the caller is an approved member of."""
    query = select(Event).order_by(Event.start_time)
    if not caller.is_sys_admin:
        org_ids = caller.approved_org_ids()
        if not org_ids:
            return []
        query = query.where(Event.org_id.in_(org_ids))
    result = await session.execute(query)
    return list(result.scalars().all())
