"""
Shared fixtures for Volunteer Hub tests.

Engine tests run against a throwaway file-backed SQLite database per test.
"""

import os
import tempfile

# Must be set before volunteer_hub.core.database creates the app engine.
_DB_DIR = tempfile.mkdtemp(prefix="volunteer-hub-tests-")
os.environ["VH_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/app.db"
os.environ["VH_SECRET_KEY"] = "test-secret-key-with-at-least-32-bytes"

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Optional, Sequence  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import volunteer_hub.models  # noqa: E402,F401
from volunteer_hub.core.auth import load_caller  # noqa: E402
from volunteer_hub.core.permissions import Caller  # noqa: E402
from volunteer_hub.models.event import Event  # noqa: E402
from volunteer_hub.models.event_question import EventQuestion  # noqa: E402
from volunteer_hub.models.organization import Organization  # noqa: E402
from volunteer_hub.models.organization_member import OrganizationMember  # noqa: E402
from volunteer_hub.models.user import User  # noqa: E402
from volunteer_hub.models.work_area import WorkArea  # noqa: E402
from volunteer_hub.services import organizations as org_service  # noqa: E402
from volunteer_hub.services import users as user_service  # noqa: E402
from volunteer_hub_shared.schemas.common import (  # noqa: E402
    GlobalRole,
    MembershipStatus,
    OrganizationRole,
)
from volunteer_hub_shared.schemas.organizations import OrgCreateRequest  # noqa: E402
from volunteer_hub_shared.schemas.users import UserCreateRequest  # noqa: E402


def _enable_savepoints(engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINT works on pysqlite/aiosqlite."""

    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    _enable_savepoints(eng)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


class Factory:
    """Builds users, organizations, memberships and events directly in the store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def user(self, name: str, global_role: GlobalRole = GlobalRole.USER) -> User:
        req = UserCreateRequest(
            email=f"{name.lower()}-{uuid.uuid4().hex[:6]}@example.org",
            name=name,
        )
        return await user_service.create_user(req, self.session, global_role=global_role)

    async def org(self, founder: User, name: str = "Sziget") -> Organization:
        return await org_service.create_organization(
            OrgCreateRequest(name=name), founder, self.session
        )

    async def member(
        self,
        user: User,
        org: Organization,
        role: OrganizationRole = OrganizationRole.VOLUNTEER,
        status: MembershipStatus = MembershipStatus.APPROVED,
    ) -> OrganizationMember:
        m = OrganizationMember(user_id=user.id, org_id=org.id, role=role.value, status=status.value)
        self.session.add(m)
        await self.session.flush()
        return m

    async def event(
        self,
        org: Organization,
        areas: Sequence[str] = ("Bar", "Gate"),
        required_question: Optional[str] = None,
    ) -> tuple[Event, dict[str, WorkArea]]:
        start = datetime.now(timezone.utc) + timedelta(days=30)
        ev = Event(org_id=org.id, title="Festival", start_time=start, end_time=start + timedelta(days=5))
        self.session.add(ev)
        await self.session.flush()
        by_name = {}
        for name in areas:
            area = WorkArea(event_id=ev.id, name=name, capacity=10)
            self.session.add(area)
            by_name[name] = area
        if required_question:
            self.session.add(EventQuestion(event_id=ev.id, question_text=required_question, is_required=True))
        await self.session.flush()
        return ev, by_name

    async def caller(self, user: User) -> Caller:
        """A fresh caller snapshot; reload after membership changes."""
        return (await load_caller(user.id, self.session)).caller


@pytest.fixture
def factory(session) -> Factory:
    return Factory(session)
