"""
Application workflow — per-(user, event, work area) tickets.

A volunteer applying to several work areas of one event gets one independent
ticket per area. Each ticket moves on its own:

    pending ──decide──▶ approved ──reset──▶ pending
       │                    │
       ├──decide──▶ rejected ──reset──▶ pending
       │                    │
       └──────withdraw──────┴──▶ withdrawn (terminal)

At most one live (non-withdrawn) ticket exists per (user, event, area); the
partial unique index ``uq_applications_live_ticket`` backs that up in the store.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from volunteer_hub.core.concurrency import compare_and_swap
from volunteer_hub.core.errors import (
    DomainError,
    Forbidden,
    InvalidTransition,
    NoNewApplications,
    NotFound,
    ValidationError,
)
from volunteer_hub.core.notifications import Notifier, defer_until_commit
from volunteer_hub.core.permissions import Action, Caller, Resource, authorize, is_allowed
from volunteer_hub.models.application import Application
from volunteer_hub.models.event import Event
from volunteer_hub.models.user import User
from volunteer_hub.services.events import get_event, get_questions, get_work_areas
from volunteer_hub_shared.schemas.common import (
    APPLICATION_TRANSITIONS,
    ApplicationStatus,
    DecisionOutcome,
)

log = structlog.get_logger()


@dataclass
class ApplyResult:
    created: list[Application] = field(default_factory=list)
    skipped_work_area_ids: list[uuid.UUID] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _load(application_id: uuid.UUID, session: AsyncSession) -> tuple[Application, Event]:
    app = await session.get(Application, application_id)
    if not app:
        raise NotFound("Application not found")
    event = await get_event(app.event_id, session)
    return app, event


def _resource(app: Application, event: Event) -> Resource:
    return Resource(kind="application", org_id=event.org_id, subject_user_id=app.user_id)


def _validate_transition(app: Application, target: ApplicationStatus) -> None:
    allowed = APPLICATION_TRANSITIONS.get(ApplicationStatus(app.status), [])
    if target not in allowed:
        raise InvalidTransition(
            f"Cannot change an application from '{app.status}' to '{target.value}'"
        )


async def _live_area_ids(
    user_id: uuid.UUID, event_id: uuid.UUID, session: AsyncSession
) -> set[uuid.UUID]:
    result = await session.execute(
        select(Application.assigned_work_area_id).where(
            Application.user_id == user_id,
            Application.event_id == event_id,
            Application.status != ApplicationStatus.WITHDRAWN.value,
        )
    )
    return {area_id for area_id in result.scalars().all() if area_id is not None}


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------

async def apply_to_event(
    caller: Caller,
    event_id: uuid.UUID,
    work_area_ids: list[uuid.UUID],
    answers: dict[str, str],
    session: AsyncSession,
) -> ApplyResult:
    """Create one pending ticket per requested work area that has no live ticket yet."""
    event = await get_event(event_id, session)
    authorize(caller, Action.APPLY_TO_EVENT, Resource(kind="event", org_id=event.org_id))

    if not work_area_ids:
        raise ValidationError("Select at least one work area")

    areas = {a.id for a in await get_work_areas(event_id, session)}
    requested = list(dict.fromkeys(work_area_ids))
    unknown = [a for a in requested if a not in areas]
    if unknown:
        raise NotFound(f"Work area {unknown[0]} does not belong to this event")

    questions = await get_questions(event_id, session)
    answers = {k: v for k, v in answers.items() if v is not None}
    for q in questions:
        if q.is_required and not answers.get(str(q.id), "").strip():
            raise ValidationError(f"An answer is required for: {q.question_text}")
    kept_answers = {str(q.id): answers[str(q.id)] for q in questions if str(q.id) in answers}

    live = await _live_area_ids(caller.user_id, event_id, session)
    result = ApplyResult()
    for area_id in requested:
        if area_id in live:
            result.skipped_work_area_ids.append(area_id)
            continue
        ticket = Application(
            user_id=caller.user_id,
            event_id=event_id,
            preferred_work_area_ids=[str(area_id)],
            assigned_work_area_id=area_id,
            status=ApplicationStatus.PENDING.value,
            answers=kept_answers,
        )
        try:
            async with session.begin_nested():
                session.add(ticket)
        except IntegrityError:
            # lost a race with a concurrent apply for the same area
            log.info("application.duplicate", event_id=str(event_id), work_area_id=str(area_id))
            result.skipped_work_area_ids.append(area_id)
            continue
        result.created.append(ticket)

    if not result.created:
        raise NoNewApplications()

    log.info(
        "application.submitted",
        event_id=str(event_id),
        user_id=str(caller.user_id),
        created=len(result.created),
        skipped=len(result.skipped_work_area_ids),
    )
    return result


# ---------------------------------------------------------------------------
# Admin decisions
# ---------------------------------------------------------------------------

async def _notify_decision(
    app: Application, event: Event, notifier: Optional[Notifier], session: AsyncSession
) -> None:
    if notifier is None:
        return
    user = await session.get(User, app.user_id)
    if not user:
        return
    if app.status == ApplicationStatus.APPROVED.value:
        body = f"Your application for '{event.title}' has been approved."
    else:
        body = f"Your application for '{event.title}' was not accepted."
        if app.rejection_message:
            body += f"\n\n{app.rejection_message}"
    defer_until_commit(
        session,
        notifier,
        [user.email],
        f"Application update: {event.title}",
        body,
        application_id=str(app.id),
        kind="application_decision",
    )


async def decide_application(
    caller: Caller,
    application_id: uuid.UUID,
    outcome: DecisionOutcome,
    session: AsyncSession,
    rejection_message: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> Application:
    """Approve or reject a pending ticket."""
    app, event = await _load(application_id, session)
    authorize(caller, Action.DECIDE_APPLICATION, _resource(app, event))

    if outcome == DecisionOutcome.APPROVED:
        target, rejection_message = ApplicationStatus.APPROVED, None
    elif outcome == DecisionOutcome.REJECTED:
        target = ApplicationStatus.REJECTED
    else:
        raise ValidationError(f"Unknown outcome: {outcome}")
    _validate_transition(app, target)

    await compare_and_swap(
        session, app, status=target.value, rejection_message=rejection_message
    )
    log.info(
        "application.decided",
        application_id=str(app.id),
        event_id=str(app.event_id),
        outcome=app.status,
        by=str(caller.user_id),
    )
    await _notify_decision(app, event, notifier, session)
    return app


async def bulk_decide_applications(
    caller: Caller,
    application_ids: list[uuid.UUID],
    outcome: DecisionOutcome,
    session: AsyncSession,
    rejection_message: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> int:
    """
    Decide many tickets at once. Each ticket is decided in its own savepoint;
    tickets the caller may not decide, missing, already decided, or changed
    concurrently are skipped. Returns the number of tickets changed.
    """
    changed = 0
    for application_id in dict.fromkeys(application_ids):
        try:
            async with session.begin_nested():
                await decide_application(
                    caller,
                    application_id,
                    outcome,
                    session,
                    rejection_message=rejection_message,
                    notifier=notifier,
                )
        except DomainError as exc:
            log.info(
                "application.bulk_skipped",
                application_id=str(application_id),
                code=exc.code,
            )
            continue
        changed += 1

    log.info(
        "application.bulk_decided",
        requested=len(application_ids),
        changed=changed,
        outcome=outcome.value,
        by=str(caller.user_id),
    )
    return changed


async def reset_application(
    caller: Caller, application_id: uuid.UUID, session: AsyncSession
) -> Application:
    """
    Move a decided ticket back to pending.

    Organization admins may reset approved or rejected tickets. The ticket's
    owner may only re-affirm a ticket that is still pending.
    """
    app, event = await _load(application_id, session)
    resource = _resource(app, event)
    authorize(caller, Action.RESET_APPLICATION, resource)

    if app.status == ApplicationStatus.WITHDRAWN.value:
        raise InvalidTransition("A withdrawn application cannot be reset")
    if app.status == ApplicationStatus.PENDING.value:
        return app
    if not is_allowed(caller, Action.DECIDE_APPLICATION, resource):
        raise Forbidden("Only organization admins can reset a decided application")

    _validate_transition(app, ApplicationStatus.PENDING)
    await compare_and_swap(
        session, app, status=ApplicationStatus.PENDING.value, rejection_message=None
    )
    log.info("application.reset", application_id=str(app.id), by=str(caller.user_id))
    return app


async def set_application_note(
    caller: Caller,
    application_id: uuid.UUID,
    note: Optional[str],
    session: AsyncSession,
) -> Application:
    """Admin-only annotation; never shown to the applicant."""
    app, event = await _load(application_id, session)
    authorize(caller, Action.SET_APPLICATION_NOTE, _resource(app, event))

    await compare_and_swap(session, app, admin_note=note)
    log.info("application.noted", application_id=str(app.id), by=str(caller.user_id))
    return app


# ---------------------------------------------------------------------------
# Applicant actions
# ---------------------------------------------------------------------------

async def withdraw_application(
    caller: Caller, application_id: uuid.UUID, session: AsyncSession
) -> Application:
    """Withdraw one's own ticket. Withdrawing twice is a no-op."""
    app, event = await _load(application_id, session)
    authorize(caller, Action.WITHDRAW_APPLICATION, _resource(app, event))

    if app.status == ApplicationStatus.WITHDRAWN.value:
        return app

    _validate_transition(app, ApplicationStatus.WITHDRAWN)
    await compare_and_swap(session, app, status=ApplicationStatus.WITHDRAWN.value)
    log.info("application.withdrawn", application_id=str(app.id), user_id=str(app.user_id))
    return app


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_event_applications(
    caller: Caller,
    event_id: uuid.UUID,
    session: AsyncSession,
    status: Optional[ApplicationStatus] = None,
) -> list[Application]:
    event = await get_event(event_id, session)
    authorize(caller, Action.VIEW_EVENT_APPLICATIONS, Resource(kind="event", org_id=event.org_id))

    query = (
        select(Application)
        .where(Application.event_id == event_id)
        .order_by(Application.applied_at)
    )
    if status is not None:
        query = query.where(Application.status == status.value)
    result = await session.execute(query)
    return list(result.scalars().all())


async def list_my_applications(caller: Caller, session: AsyncSession) -> list[Application]:
    result = await session.execute(
        select(Application)
        .where(Application.user_id == caller.user_id)
        .order_by(Application.applied_at.desc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------

async def send_bulk_message(
    caller: Caller,
    application_ids: list[uuid.UUID],
    subject: str,
    body: str,
    notifier: Notifier,
    session: AsyncSession,
) -> int:
    """
    Queue one BCC-style message to the applicants of the given tickets.

    Tickets the caller may not message are ignored. Returns the number of
    distinct recipients; 0 when nothing was queued.
    """
    result = await session.execute(
        select(Application, Event, User)
        .join(Event, Event.id == Application.event_id)
        .join(User, User.id == Application.user_id)
        .where(Application.id.in_(list(application_ids)))
    )

    recipients: list[str] = []
    for app, event, user in result.all():
        if is_allowed(caller, Action.SEND_BULK_MESSAGE, _resource(app, event)):
            recipients.append(user.email)
    recipients = list(dict.fromkeys(recipients))

    if not recipients:
        raise Forbidden("None of the selected applications can be messaged by you")

    if not notifier.enqueue(recipients, subject, body, by=str(caller.user_id)):
        log.warning("application.bulk_message_dropped", recipients=len(recipients))
        return 0

    log.info(
        "application.bulk_message_queued",
        recipients=len(recipients),
        by=str(caller.user_id),
    )
    return len(recipients)
