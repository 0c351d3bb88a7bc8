"""
HTTP tests for the v1 API.

Requests go through the real FastAPI app with the session dependency pointed
at the per-test SQLite database and a recording notifier.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from volunteer_hub.core.config import get_settings
from volunteer_hub.core.database import get_session
from volunteer_hub.core.notifications import (
    BulkMessage,
    Notifier,
    discard_deferred,
    get_notifier,
    release_deferred,
)
from volunteer_hub.main import app
from volunteer_hub_shared.schemas.common import GlobalRole


class RecordingTransport:
    def __init__(self):
        self.sent: list[BulkMessage] = []

    async def send(self, message: BulkMessage) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        return None


def _token(user_id, **claims) -> str:
    settings = get_settings()
    return jwt.encode({"sub": str(user_id), **claims}, settings.secret_key, algorithm=settings.jwt_algorithm)


def _headers(user) -> dict:
    token = _token(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def notifier():
    return Notifier(RecordingTransport())


@pytest.fixture
async def client(session_factory, notifier):
    async def _session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                discard_deferred(s)
                raise
            release_deferred(s)

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def people(factory, session):
    users = {
        "founder": await factory.user("Founder"),
        "volunteer": await factory.user("Volunteer"),
        "admin": await factory.user("Admin", global_role=GlobalRole.SYS_ADMIN),
    }
    await session.commit()
    return users


async def _create_org(client, founder, name="Sziget") -> dict:
    resp = await client.post("/api/v1/orgs", json={"name": name}, headers=_headers(founder))
    assert resp.status_code == 201
    return resp.json()


async def _approved_volunteer(client, people) -> dict:
    org = await _create_org(client, people["founder"])
    resp = await client.post(
        "/api/v1/orgs/join-by-code",
        json={"invite_code": org["invite_code"]},
        headers=_headers(people["volunteer"]),
    )
    assert resp.status_code == 200
    membership = resp.json()
    resp = await client.put(
        f"/api/v1/memberships/{membership['id']}/decision",
        json={"outcome": "approved"},
        headers=_headers(people["founder"]),
    )
    assert resp.status_code == 200
    return org


async def _create_event(client, founder, org) -> dict:
    resp = await client.post(
        f"/api/v1/orgs/{org['id']}/events",
        json={
            "title": "Sziget 2030",
            "start_time": "2030-08-07T10:00:00Z",
            "end_time": "2030-08-13T23:00:00Z",
            "work_areas": [{"name": "Bar", "capacity": 20}, {"name": "Gate", "capacity": 4}],
        },
        headers=_headers(founder),
    )
    assert resp.status_code == 201
    return resp.json()


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        resp = await client.get("/api/v1/users/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHENTICATED"

    @pytest.mark.asyncio
    async def test_token_with_wrong_key(self, client, people):
        token = jwt.encode({"sub": str(people["founder"].id)}, "x" * 40, algorithm="HS256")
        resp = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, client, people):
        token = _token(people["founder"].id, exp=datetime.now(timezone.utc) - timedelta(minutes=5))
        resp = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, client):
        token = _token(uuid.uuid4())
        resp = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401


class TestMembershipRoutes:
    @pytest.mark.asyncio
    async def test_join_and_approve(self, client, people):
        org = await _approved_volunteer(client, people)

        resp = await client.get("/api/v1/users/me", headers=_headers(people["volunteer"]))
        assert resp.status_code == 200
        memberships = resp.json()["memberships"]
        assert memberships[0]["org_id"] == org["id"]
        assert memberships[0]["status"] == "approved"

        resp = await client.get("/api/v1/orgs/mine", headers=_headers(people["volunteer"]))
        assert [o["name"] for o in resp.json()["data"]] == ["Sziget"]

    @pytest.mark.asyncio
    async def test_duplicate_join_conflicts(self, client, people):
        org = await _create_org(client, people["founder"])
        headers = _headers(people["volunteer"])
        assert (await client.post(f"/api/v1/orgs/{org['id']}/join", headers=headers)).status_code == 200

        resp = await client.post(f"/api/v1/orgs/{org['id']}/join", headers=headers)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "ALREADY_REQUESTED"

    @pytest.mark.asyncio
    async def test_pending_list_for_leader(self, client, people):
        org = await _create_org(client, people["founder"])
        await client.post(f"/api/v1/orgs/{org['id']}/join", headers=_headers(people["volunteer"]))

        resp = await client.get("/api/v1/memberships/pending", headers=_headers(people["founder"]))
        assert resp.status_code == 200
        assert [m["name"] for m in resp.json()["data"]] == ["Volunteer"]

    @pytest.mark.asyncio
    async def test_sole_owner_cannot_step_down(self, client, people):
        org = await _create_org(client, people["founder"])
        founder = people["founder"]

        resp = await client.put(
            f"/api/v1/orgs/{org['id']}/members/{founder.id}/role",
            json={"role": "volunteer"},
            headers=_headers(founder),
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "LAST_LEADER_PROTECTED"

    @pytest.mark.asyncio
    async def test_sys_admin_decides_foreign_membership(self, client, people):
        org = await _create_org(client, people["founder"])
        resp = await client.post(f"/api/v1/orgs/{org['id']}/join", headers=_headers(people["volunteer"]))

        resp = await client.put(
            f"/api/v1/memberships/{resp.json()['id']}/decision",
            json={"outcome": "rejected", "reason": "Roster closed"},
            headers=_headers(people["admin"]),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "rejected"
        assert resp.json()["rejection_reason"] == "Roster closed"

    @pytest.mark.asyncio
    async def test_volunteer_leaves(self, client, people):
        org = await _approved_volunteer(client, people)
        resp = await client.post(f"/api/v1/orgs/{org['id']}/leave", headers=_headers(people["volunteer"]))
        assert resp.status_code == 200
        assert resp.json()["status"] == "left"

    @pytest.mark.asyncio
    async def test_members_hidden_from_volunteers(self, client, people):
        org = await _approved_volunteer(client, people)
        resp = await client.get(f"/api/v1/orgs/{org['id']}/members", headers=_headers(people["volunteer"]))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "FORBIDDEN"


class TestApplicationRoutes:
    @pytest.mark.asyncio
    async def test_apply_decide_withdraw(self, client, people, notifier):
        org = await _approved_volunteer(client, people)
        event = await _create_event(client, people["founder"], org)
        areas = {a["name"]: a["id"] for a in event["work_areas"]}
        v_headers = _headers(people["volunteer"])
        f_headers = _headers(people["founder"])

        resp = await client.post(
            f"/api/v1/events/{event['id']}/applications",
            json={"work_area_ids": [areas["Bar"], areas["Gate"]]},
            headers=v_headers,
        )
        assert resp.status_code == 201
        tickets = {t["assigned_work_area_id"]: t for t in resp.json()["created"]}
        assert len(tickets) == 2

        resp = await client.post(
            f"/api/v1/events/{event['id']}/applications",
            json={"work_area_ids": [areas["Bar"]]},
            headers=v_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "NO_NEW_APPLICATIONS"

        bar = tickets[areas["Bar"]]
        resp = await client.put(
            f"/api/v1/applications/{bar['id']}/decision",
            json={"outcome": "approved"},
            headers=f_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"
        assert notifier.pending == 1

        await client.put(
            f"/api/v1/applications/{bar['id']}/note", json={"note": "Knows the tills"}, headers=f_headers
        )
        resp = await client.get("/api/v1/applications/mine", headers=v_headers)
        mine = {t["id"]: t for t in resp.json()["data"]}
        assert mine[bar["id"]]["status"] == "approved"
        assert mine[bar["id"]]["admin_note"] is None

        resp = await client.get(f"/api/v1/events/{event['id']}", headers=v_headers)
        counts = {a["name"]: a["approved_count"] for a in resp.json()["work_areas"]}
        assert counts == {"Bar": 1, "Gate": 0}

        gate = tickets[areas["Gate"]]
        for _ in range(2):
            resp = await client.delete(f"/api/v1/applications/{gate['id']}", headers=v_headers)
            assert resp.status_code == 200
            assert resp.json()["status"] == "withdrawn"

    @pytest.mark.asyncio
    async def test_volunteer_cannot_decide(self, client, people):
        org = await _approved_volunteer(client, people)
        event = await _create_event(client, people["founder"], org)
        v_headers = _headers(people["volunteer"])
        resp = await client.post(
            f"/api/v1/events/{event['id']}/applications",
            json={"work_area_ids": [event["work_areas"][0]["id"]]},
            headers=v_headers,
        )
        ticket = resp.json()["created"][0]

        resp = await client.put(
            f"/api/v1/applications/{ticket['id']}/decision", json={"outcome": "approved"}, headers=v_headers
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_bulk_decision_and_message(self, client, people, notifier):
        org = await _approved_volunteer(client, people)
        event = await _create_event(client, people["founder"], org)
        resp = await client.post(
            f"/api/v1/events/{event['id']}/applications",
            json={"work_area_ids": [a["id"] for a in event["work_areas"]]},
            headers=_headers(people["volunteer"]),
        )
        ids = [t["id"] for t in resp.json()["created"]]
        f_headers = _headers(people["founder"])

        resp = await client.put(
            "/api/v1/applications/bulk-decision",
            json={"application_ids": ids + [str(uuid.uuid4())], "outcome": "rejected", "rejection_message": "Full"},
            headers=f_headers,
        )
        assert resp.status_code == 200
        assert resp.json() == {"changed": 2}

        resp = await client.post(
            "/api/v1/applications/bulk-message",
            json={"application_ids": ids, "subject": "Next year", "message": "Thanks for applying"},
            headers=f_headers,
        )
        assert resp.status_code == 202
        assert resp.json() == {"recipients": 1}

        resp = await client.get(
            f"/api/v1/events/{event['id']}/applications", params={"status": "rejected"}, headers=f_headers
        )
        assert len(resp.json()["data"]) == 2

    @pytest.mark.asyncio
    async def test_apply_requires_approved_membership(self, client, people):
        org = await _create_org(client, people["founder"])
        event = await _create_event(client, people["founder"], org)
        resp = await client.post(
            f"/api/v1/events/{event['id']}/applications",
            json={"work_area_ids": [event["work_areas"][0]["id"]]},
            headers=_headers(people["volunteer"]),
        )
        assert resp.status_code == 403


class TestGlobalRoleRoutes:
    @pytest.mark.asyncio
    async def test_user_cannot_promote_self(self, client, people):
        volunteer = people["volunteer"]
        resp = await client.put(
            f"/api/v1/users/{volunteer.id}/global-role",
            json={"role": "sys_admin"},
            headers=_headers(volunteer),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_last_sys_admin_protected(self, client, people):
        admin = people["admin"]
        resp = await client.put(
            f"/api/v1/users/{admin.id}/global-role", json={"role": "user"}, headers=_headers(admin)
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "LAST_SYS_ADMIN_PROTECTED"


class TestProfileRoutes:
    @pytest.mark.asyncio
    async def test_edit_own_profile(self, client, people):
        headers = _headers(people["volunteer"])
        resp = await client.put("/api/v1/users/me", json={"phone_number": "+36 30 123 4567"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["phone_number"] == "+36 30 123 4567"
        assert resp.json()["name"] == "Volunteer"

        resp = await client.get("/api/v1/users/me", headers=headers)
        assert resp.json()["user"]["phone_number"] == "+36 30 123 4567"

    @pytest.mark.asyncio
    async def test_user_listing(self, client, people):
        resp = await client.get("/api/v1/users", headers=_headers(people["admin"]))
        assert resp.status_code == 200
        assert len(resp.json()["data"]) == 3

        resp = await client.get("/api/v1/users", headers=_headers(people["founder"]))
        assert resp.status_code == 403


class TestEventRoutes:
    @pytest.mark.asyncio
    async def test_mixed_offset_window_is_422(self, client, people):
        org = await _create_org(client, people["founder"])
        resp = await client.post(
            f"/api/v1/orgs/{org['id']}/events",
            json={"title": "Late", "start_time": "2030-08-07T10:00:00Z", "end_time": "2030-08-07T09:00:00"},
            headers=_headers(people["founder"]),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_work_area_lifecycle(self, client, people):
        org = await _create_org(client, people["founder"])
        event = await _create_event(client, people["founder"], org)
        f_headers = _headers(people["founder"])

        resp = await client.post(
            f"/api/v1/events/{event['id']}/work-areas",
            json={"name": "Camping", "capacity": 12},
            headers=f_headers,
        )
        assert resp.status_code == 201
        camping = resp.json()

        resp = await client.get(f"/api/v1/events/{event['id']}/work-areas", headers=f_headers)
        assert [a["name"] for a in resp.json()["data"]] == ["Bar", "Camping", "Gate"]

        resp = await client.delete(f"/api/v1/work-areas/{camping['id']}", headers=f_headers)
        assert resp.status_code == 204

        resp = await client.get(f"/api/v1/events/{event['id']}/work-areas", headers=f_headers)
        assert [a["name"] for a in resp.json()["data"]] == ["Bar", "Gate"]

    @pytest.mark.asyncio
    async def test_work_area_in_use_conflicts(self, client, people):
        org = await _approved_volunteer(client, people)
        event = await _create_event(client, people["founder"], org)
        bar = next(a for a in event["work_areas"] if a["name"] == "Bar")
        await client.post(
            f"/api/v1/events/{event['id']}/applications",
            json={"work_area_ids": [bar["id"]]},
            headers=_headers(people["volunteer"]),
        )

        resp = await client.delete(f"/api/v1/work-areas/{bar['id']}", headers=_headers(people["founder"]))
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "WORK_AREA_IN_USE"
