"""
Tests for organizations and events.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as SchemaValidationError

from volunteer_hub.core.errors import AlreadyExists, Forbidden, NotFound, WorkAreaInUse
from volunteer_hub.services import applications as application_service
from volunteer_hub.services import events as svc
from volunteer_hub.services import organizations as org_service
from volunteer_hub_shared.schemas.common import (
    ApplicationStatus,
    MembershipStatus,
    OrganizationRole,
    QuestionType,
)
from volunteer_hub_shared.schemas.events import EventCreateRequest, QuestionCreate, WorkAreaCreate
from volunteer_hub_shared.schemas.organizations import OrgCreateRequest

START = datetime(2030, 8, 7, 10, 0, tzinfo=timezone.utc)


def _event_request(**overrides) -> EventCreateRequest:
    data = {
        "title": "Sziget 2030",
        "start_time": START,
        "end_time": START + timedelta(days=6),
        "work_areas": [WorkAreaCreate(name="Bar", capacity=20), WorkAreaCreate(name="Gate", capacity=5)],
        "questions": [QuestionCreate(question_text="Shirt size?", question_type=QuestionType.DROPDOWN, options="S,M,L", is_required=True)],
    }
    data.update(overrides)
    return EventCreateRequest(**data)


class TestOrganizations:
    @pytest.mark.asyncio
    async def test_name_is_unique(self, factory, session):
        f = await factory.user("Founder")
        await factory.org(f, name="Sziget")
        with pytest.raises(AlreadyExists):
            await org_service.create_organization(OrgCreateRequest(name="Sziget"), f, session)

    @pytest.mark.asyncio
    async def test_racing_create_with_same_name(self, factory, session, session_factory, monkeypatch):
        f = await factory.user("Founder")
        await session.commit()

        async with session_factory() as other:
            await org_service.create_organization(OrgCreateRequest(name="Sziget"), f, other)
            await other.commit()

        async def _not_found(*args, **kwargs):
            return None

        monkeypatch.setattr(org_service, "find_organization_by_name", _not_found)
        with pytest.raises(AlreadyExists):
            await org_service.create_organization(OrgCreateRequest(name="Sziget"), f, session)
        assert [o.name for o in await org_service.list_organizations(session)] == ["Sziget"]

    @pytest.mark.asyncio
    async def test_invite_code_lookup(self, factory, session):
        f = await factory.user("Founder")
        org = await factory.org(f)
        assert org.invite_code
        assert (await org_service.get_organization_by_invite_code(org.invite_code, session)).id == org.id
        with pytest.raises(NotFound):
            await org_service.get_organization_by_invite_code("nope", session)

    @pytest.mark.asyncio
    async def test_catalog_and_user_organizations(self, factory, session):
        f = await factory.user("Founder")
        v = await factory.user("Volunteer")
        a = await factory.org(f, name="Alpha")
        await factory.org(f, name="Beta")
        await factory.member(v, a, status=MembershipStatus.PENDING)

        catalog = await org_service.list_organizations(session)
        assert [o.name for o in catalog] == ["Alpha", "Beta"]

        mine = await org_service.list_user_organizations(v.id, session)
        assert [(o["name"], o["role"], o["status"]) for o in mine] == [
            ("Alpha", OrganizationRole.VOLUNTEER.value, MembershipStatus.PENDING.value)
        ]


class TestEvents:
    @pytest.mark.asyncio
    async def test_leader_creates_event_with_areas_and_questions(self, factory, session):
        f = await factory.user("Founder")
        org = await factory.org(f)
        caller = await factory.caller(f)

        event = await svc.create_event(caller, org.id, _event_request(), session)
        detail = await svc.get_event_detail(caller, event.id, session)

        assert detail["org_name"] == org.name
        assert sorted(a["name"] for a in detail["work_areas"]) == ["Bar", "Gate"]
        assert all(a["approved_count"] == 0 for a in detail["work_areas"])
        assert detail["questions"][0]["options"] == "S,M,L"
        assert detail["questions"][0]["is_required"] is True

    @pytest.mark.asyncio
    async def test_coordinator_cannot_create_event(self, factory, session):
        f = await factory.user("Founder")
        c = await factory.user("Coordinator")
        org = await factory.org(f)
        await factory.member(c, org, OrganizationRole.COORDINATOR)
        with pytest.raises(Forbidden):
            await svc.create_event(await factory.caller(c), org.id, _event_request(), session)

    def test_end_before_start_is_rejected(self):
        with pytest.raises(SchemaValidationError):
            _event_request(end_time=START - timedelta(hours=1))

    def test_naive_timestamp_is_read_as_utc(self):
        req = _event_request(start_time="2030-08-07T10:00:00Z", end_time="2030-08-08T10:00:00")
        assert req.end_time == datetime(2030, 8, 8, 10, 0, tzinfo=timezone.utc)

        with pytest.raises(SchemaValidationError):
            _event_request(start_time="2030-08-07T10:00:00+02:00", end_time="2030-08-07T07:00:00")

    def test_negative_capacity_is_rejected(self):
        with pytest.raises(SchemaValidationError):
            WorkAreaCreate(name="Bar", capacity=-1)

    @pytest.mark.asyncio
    async def test_list_events_scoped_to_approved_orgs(self, factory, session):
        f = await factory.user("Founder")
        v = await factory.user("Volunteer")
        stranger = await factory.user("Stranger")
        a = await factory.org(f, name="Alpha")
        b = await factory.org(f, name="Beta")
        await factory.member(v, a)
        ev_a, _ = await factory.event(a)
        await factory.event(b)

        assert [e.id for e in await svc.list_events(await factory.caller(v), session)] == [ev_a.id]
        assert len(await svc.list_events(await factory.caller(f), session)) == 2
        assert await svc.list_events(await factory.caller(stranger), session) == []

    @pytest.mark.asyncio
    async def test_event_detail_requires_membership(self, factory, session):
        f = await factory.user("Founder")
        stranger = await factory.user("Stranger")
        org = await factory.org(f)
        event, _ = await factory.event(org)
        with pytest.raises(Forbidden):
            await svc.get_event_detail(await factory.caller(stranger), event.id, session)


class TestWorkAreas:
    @pytest.mark.asyncio
    async def test_leader_adds_and_lists_areas(self, factory, session):
        f = await factory.user("Founder")
        v = await factory.user("Volunteer")
        org = await factory.org(f)
        await factory.member(v, org)
        event, _ = await factory.event(org)

        area = await svc.add_work_area(
            await factory.caller(f), event.id, WorkAreaCreate(name="Camping", capacity=8), session
        )
        assert area.event_id == event.id

        areas = await svc.list_work_areas(await factory.caller(v), event.id, session)
        assert [a["name"] for a in areas] == ["Bar", "Camping", "Gate"]
        assert all(a["approved_count"] == 0 for a in areas)

    @pytest.mark.asyncio
    async def test_volunteer_cannot_add_area(self, factory, session):
        f = await factory.user("Founder")
        v = await factory.user("Volunteer")
        org = await factory.org(f)
        await factory.member(v, org)
        event, _ = await factory.event(org)
        with pytest.raises(Forbidden):
            await svc.add_work_area(await factory.caller(v), event.id, WorkAreaCreate(name="Camping"), session)

    @pytest.mark.asyncio
    async def test_area_with_live_ticket_is_kept(self, factory, session):
        f = await factory.user("Founder")
        v = await factory.user("Volunteer")
        org = await factory.org(f)
        await factory.member(v, org)
        event, areas = await factory.event(org)
        v_caller = await factory.caller(v)
        f_caller = await factory.caller(f)
        ticket = (await application_service.apply_to_event(v_caller, event.id, [areas["Bar"].id], {}, session)).created[0]

        with pytest.raises(WorkAreaInUse):
            await svc.delete_work_area(f_caller, areas["Bar"].id, session)

        await application_service.withdraw_application(v_caller, ticket.id, session)
        await svc.delete_work_area(f_caller, areas["Bar"].id, session)

        assert [a.name for a in await svc.get_work_areas(event.id, session)] == ["Gate"]
        await session.refresh(ticket)
        assert ticket.assigned_work_area_id is None
        assert ticket.status == ApplicationStatus.WITHDRAWN.value

    @pytest.mark.asyncio
    async def test_delete_missing_area(self, factory, session):
        f = await factory.user("Founder")
        with pytest.raises(NotFound):
            await svc.delete_work_area(await factory.caller(f), uuid.uuid4(), session)
