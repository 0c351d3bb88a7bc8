"""
Application (ticket) API endpoints.

GET    /api/v1/applications/mine           — The caller's own tickets
PUT    /api/v1/applications/bulk-decision  — Approve/reject many tickets (admins)
POST   /api/v1/applications/bulk-message   — Email the applicants of many tickets (leaders)
PUT    /api/v1/applications/{id}/decision  — Approve or reject a ticket (admins)
POST   /api/v1/applications/{id}/reset     — Move a decided ticket back to pending
PUT    /api/v1/applications/{id}/note      — Set the internal admin note (leaders)
DELETE /api/v1/applications/{id}           — Withdraw one's own ticket
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.auth import AuthenticatedUser, get_authenticated_user
from volunteer_hub.core.database import get_session
from volunteer_hub.core.notifications import Notifier, get_notifier
from volunteer_hub.models.application import Application
from volunteer_hub.services import applications as application_service
from volunteer_hub_shared.schemas.applications import (
    ApplicationDecisionRequest,
    ApplicationListResponse,
    ApplicationRead,
    BulkDecisionRequest,
    BulkDecisionResponse,
    BulkMessageRequest,
    BulkMessageResponse,
    NoteRequest,
)

router = APIRouter()


def to_application_read(app: Application, include_note: bool = True) -> ApplicationRead:
    return ApplicationRead(
        id=app.id,
        user_id=app.user_id,
        event_id=app.event_id,
        preferred_work_area_ids=app.preferred_work_area_ids,
        assigned_work_area_id=app.assigned_work_area_id,
        status=app.status,
        applied_at=app.applied_at,
        answers=app.answers,
        admin_note=app.admin_note if include_note else None,
        rejection_message=app.rejection_message,
    )


@router.get("/mine", response_model=ApplicationListResponse)
async def list_mine(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """The caller's tickets. Internal admin notes are never included."""
    apps = await application_service.list_my_applications(auth.caller, session)
    return ApplicationListResponse(data=[to_application_read(a, include_note=False) for a in apps])


@router.put("/bulk-decision", response_model=BulkDecisionResponse)
async def bulk_decide(
    body: BulkDecisionRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    changed = await application_service.bulk_decide_applications(
        auth.caller,
        body.application_ids,
        body.outcome,
        session,
        rejection_message=body.rejection_message,
        notifier=notifier,
    )
    return BulkDecisionResponse(changed=changed)


@router.post("/bulk-message", response_model=BulkMessageResponse, status_code=202)
async def bulk_message(
    body: BulkMessageRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Queue one message to the applicants of the selected tickets. Delivery is asynchronous."""
    recipients = await application_service.send_bulk_message(
        auth.caller, body.application_ids, body.subject, body.message, notifier, session
    )
    return BulkMessageResponse(recipients=recipients)


@router.put("/{applicationId}/decision", response_model=ApplicationRead)
async def decide(
    applicationId: uuid.UUID,
    body: ApplicationDecisionRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    app = await application_service.decide_application(
        auth.caller,
        applicationId,
        body.outcome,
        session,
        rejection_message=body.rejection_message,
        notifier=notifier,
    )
    return to_application_read(app)


@router.post("/{applicationId}/reset", response_model=ApplicationRead)
async def reset(
    applicationId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    app = await application_service.reset_application(auth.caller, applicationId, session)
    return to_application_read(app, include_note=app.user_id != auth.user_id)


@router.put("/{applicationId}/note", response_model=ApplicationRead)
async def set_note(
    applicationId: uuid.UUID,
    body: NoteRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    app = await application_service.set_application_note(
        auth.caller, applicationId, body.note, session
    )
    return to_application_read(app)


@router.delete("/{applicationId}", response_model=ApplicationRead)
async def withdraw(
    applicationId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Withdraw one's own ticket. Repeating the call is harmless."""
    app = await application_service.withdraw_application(auth.caller, applicationId, session)
    return to_application_read(app, include_note=False)
