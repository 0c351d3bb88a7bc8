"""
Identity store — user records, profile view, and the global role safeguard.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from volunteer_hub.core.concurrency import lock_sys_admins
from volunteer_hub.core.errors import AlreadyExists, LastSysAdminProtected, NotFound
from volunteer_hub.core.permissions import Action, Caller, Resource, authorize
from volunteer_hub.models.organization import Organization
from volunteer_hub.models.organization_member import OrganizationMember
from volunteer_hub.models.user import User
from volunteer_hub_shared.schemas.common import GlobalRole
from volunteer_hub_shared.schemas.users import ProfileUpdateRequest, UserCreateRequest

log = structlog.get_logger()


async def create_user(
    req: UserCreateRequest,
    session: AsyncSession,
    global_role: GlobalRole = GlobalRole.USER,
) -> User:
    """Create a user record. Emails are unique (case-insensitive)."""
    email = req.email.lower()
    if await get_user_by_email(email, session):
        raise AlreadyExists("This email address is already registered")

    user = User(
        email=email,
        name=req.name,
        phone_number=req.phone_number,
        credential_ref=req.credential_ref,
        global_role=global_role.value,
    )
    session.add(user)
    await session.flush()

    log.info("user.created", user_id=str(user.id), global_role=global_role.value)
    return user


async def get_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


async def get_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def count_users_by_role(role: GlobalRole, session: AsyncSession) -> int:
    """Users holding ``role``. Counted under lock by the sys_admin safeguard."""
    result = await session.execute(
        select(func.count()).select_from(User).where(User.global_role == role.value)
    )
    return result.scalar_one()


async def get_profile(user_id: uuid.UUID, session: AsyncSession) -> dict:
    """The user together with every membership they hold, in any status."""
    user = await get_user(user_id, session)
    result = await session.execute(
        select(OrganizationMember, Organization.name)
        .join(Organization, Organization.id == OrganizationMember.org_id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(Organization.name)
    )
    memberships = [
        {
            "membership_id": m.id,
            "org_id": m.org_id,
            "org_name": org_name,
            "role": m.role,
            "status": m.status,
            "rejection_reason": m.rejection_reason,
        }
        for m, org_name in result.all()
    ]
    return {"user": user, "memberships": memberships}


async def update_profile(
    caller: Caller, req: ProfileUpdateRequest, session: AsyncSession
) -> User:
    """Edit the caller's own profile fields."""
    user = await get_user(caller.user_id, session)
    changes = req.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)

    for field, value in changes.items():
        setattr(user, field, value)
    session.add(user)
    await session.flush()

    log.info("user.profile_updated", user_id=str(user.id), fields=sorted(changes))
    return user


async def list_users(caller: Caller, session: AsyncSession) -> list[User]:
    """Every user record (sys_admin only)."""
    authorize(caller, Action.LIST_USERS, Resource(kind="user"))
    result = await session.execute(select(User).order_by(User.name))
    return list(result.scalars().all())


async def change_global_role(
    caller: Caller,
    user_id: uuid.UUID,
    new_role: GlobalRole,
    session: AsyncSession,
) -> User:
    """Promote or demote a user's global role (sys_admin only).

    Demoting the last remaining sys_admin fails with LastSysAdminProtected.
    The sys_admin rows are locked before counting so two concurrent demotions
    cannot both observe a count of two.
    """
    authorize(caller, Action.CHANGE_GLOBAL_ROLE, Resource(kind="user", subject_user_id=user_id))

    user = await get_user(user_id, session)
    if user.global_role == new_role.value:
        return user

    if user.global_role == GlobalRole.SYS_ADMIN.value:
        await lock_sys_admins(session)
        if await count_users_by_role(GlobalRole.SYS_ADMIN, session) <= 1:
            raise LastSysAdminProtected()

    user.global_role = new_role.value
    session.add(user)
    await session.flush()

    log.info(
        "user.global_role_changed",
        user_id=str(user_id),
        role=new_role.value,
        by=str(caller.user_id),
    )
    return user
