"""
Membership engine — the per-(user, organization) state machine.

    (none) ──join──▶ pending ──decide──▶ approved ──leave/remove──▶ left
                        │                                            │
                        └──decide──▶ rejected ◀──────────────────────┘
                                       │          (join again)
                                       └──join──▶ pending

Every write goes through compare-and-swap on the row version. Transitions that
can reduce an organization's leader count (role change, leave, remove) first
lock the organization row, then count, then write, in one transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from volunteer_hub.core.concurrency import compare_and_swap, lock_organization
from volunteer_hub.core.errors import (
    AlreadyRequested,
    InvalidTransition,
    LastLeaderProtected,
    NotFound,
    OwnerCannotLeave,
    ValidationError,
)
from volunteer_hub.core.permissions import Action, Caller, Resource, authorize
from volunteer_hub.models.organization import Organization
from volunteer_hub.models.organization_member import OrganizationMember
from volunteer_hub.models.user import User
from volunteer_hub.services import organizations as org_store
from volunteer_hub_shared.schemas.common import (
    LEADER_ROLES,
    MEMBERSHIP_TRANSITIONS,
    DecisionOutcome,
    MembershipStatus,
    OrganizationRole,
)

log = structlog.get_logger()

_LEADER_VALUES = tuple(r.value for r in LEADER_ROLES)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _resource(m: OrganizationMember) -> Resource:
    return Resource(kind="membership", org_id=m.org_id, subject_user_id=m.user_id)


async def get_membership(membership_id: uuid.UUID, session: AsyncSession) -> OrganizationMember:
    m = await session.get(OrganizationMember, membership_id)
    if not m:
        raise NotFound("Membership not found")
    return m


async def find_membership(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> Optional[OrganizationMember]:
    result = await session.execute(
        select(OrganizationMember).where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.org_id == org_id,
        )
    )
    return result.scalar_one_or_none()


async def _require_membership(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> OrganizationMember:
    m = await find_membership(user_id, org_id, session)
    if not m:
        raise NotFound("The user is not a member of this organization")
    return m


def _validate_transition(m: OrganizationMember, target: MembershipStatus, message: str) -> None:
    allowed = MEMBERSHIP_TRANSITIONS.get(MembershipStatus(m.status), [])
    if target not in allowed:
        raise InvalidTransition(f"{message} (current: {m.status})")


async def count_leaders(
    org_id: uuid.UUID,
    session: AsyncSession,
    exclude_membership_id: Optional[uuid.UUID] = None,
) -> int:
    """Approved owners/organizers of the organization."""
    query = (
        select(func.count())
        .select_from(OrganizationMember)
        .where(
            OrganizationMember.org_id == org_id,
            OrganizationMember.status == MembershipStatus.APPROVED.value,
            OrganizationMember.role.in_(_LEADER_VALUES),
        )
    )
    if exclude_membership_id is not None:
        query = query.where(OrganizationMember.id != exclude_membership_id)
    result = await session.execute(query)
    return result.scalar_one()


async def _guard_last_leader(m: OrganizationMember, session: AsyncSession) -> None:
    """Lock the organization and refuse if ``m`` is its only remaining leader."""
    await lock_organization(session, m.org_id)
    if await count_leaders(m.org_id, session, exclude_membership_id=m.id) == 0:
        raise LastLeaderProtected()


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

async def bootstrap_founder(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> OrganizationMember:
    """Insert the creating user as an approved owner."""
    m = OrganizationMember(
        user_id=user_id,
        org_id=org_id,
        role=OrganizationRole.OWNER.value,
        status=MembershipStatus.APPROVED.value,
    )
    session.add(m)
    await session.flush()
    log.info("membership.founder", membership_id=str(m.id), org_id=str(org_id), user_id=str(user_id))
    return m


async def join_organization(
    caller: Caller, org_id: uuid.UUID, session: AsyncSession
) -> OrganizationMember:
    """Request membership. A rejected or departed member re-applies on the same row."""
    await org_store.get_organization(org_id, session)

    existing = await find_membership(caller.user_id, org_id, session)
    if existing is None:
        m = OrganizationMember(
            user_id=caller.user_id,
            org_id=org_id,
            role=OrganizationRole.VOLUNTEER.value,
            status=MembershipStatus.PENDING.value,
        )
        try:
            async with session.begin_nested():
                session.add(m)
        except IntegrityError:
            # a concurrent join inserted the row first
            raise AlreadyRequested("You have already applied to this organization or are already a member")
        log.info("membership.requested", membership_id=str(m.id), org_id=str(org_id), user_id=str(caller.user_id))
        return m

    if existing.status in (MembershipStatus.PENDING.value, MembershipStatus.APPROVED.value):
        raise AlreadyRequested("You have already applied to this organization or are already a member")

    await compare_and_swap(
        session,
        existing,
        status=MembershipStatus.PENDING.value,
        role=OrganizationRole.VOLUNTEER.value,
        rejection_reason=None,
        joined_at=datetime.now(timezone.utc),
    )
    log.info("membership.reapplied", membership_id=str(existing.id), org_id=str(org_id), user_id=str(caller.user_id))
    return existing


async def join_by_invite_code(
    caller: Caller, invite_code: str, session: AsyncSession
) -> OrganizationMember:
    org = await org_store.get_organization_by_invite_code(invite_code, session)
    return await join_organization(caller, org.id, session)


async def decide_membership(
    caller: Caller,
    membership_id: uuid.UUID,
    outcome: DecisionOutcome,
    session: AsyncSession,
    reason: Optional[str] = None,
) -> OrganizationMember:
    """Approve or reject a pending membership request."""
    m = await get_membership(membership_id, session)
    authorize(caller, Action.DECIDE_MEMBERSHIP, _resource(m))

    if outcome == DecisionOutcome.APPROVED:
        target, reason = MembershipStatus.APPROVED, None
    elif outcome == DecisionOutcome.REJECTED:
        target = MembershipStatus.REJECTED
    else:
        raise ValidationError(f"Unknown outcome: {outcome}")
    _validate_transition(m, target, "Only pending requests can be decided")
    values = {"status": target.value, "rejection_reason": reason}

    await compare_and_swap(session, m, **values)
    log.info(
        "membership.decided",
        membership_id=str(m.id),
        org_id=str(m.org_id),
        outcome=m.status,
        by=str(caller.user_id),
    )
    return m


async def change_member_role(
    caller: Caller,
    user_id: uuid.UUID,
    org_id: uuid.UUID,
    new_role: OrganizationRole,
    session: AsyncSession,
) -> OrganizationMember:
    """Change an approved member's role, keeping at least one leader."""
    m = await _require_membership(user_id, org_id, session)
    authorize(caller, Action.CHANGE_MEMBER_ROLE, _resource(m))

    if m.status != MembershipStatus.APPROVED.value:
        raise InvalidTransition("Only approved members can have their role changed")
    if m.role == new_role.value:
        return m

    if OrganizationRole(m.role) in LEADER_ROLES and new_role not in LEADER_ROLES:
        await _guard_last_leader(m, session)

    await compare_and_swap(session, m, role=new_role.value)
    log.info(
        "membership.role_changed",
        membership_id=str(m.id),
        org_id=str(org_id),
        role=new_role.value,
        by=str(caller.user_id),
    )
    return m


async def _depart(m: OrganizationMember, session: AsyncSession, owner_message: str) -> None:
    _validate_transition(m, MembershipStatus.LEFT, "Only approved members can leave")
    if m.role == OrganizationRole.OWNER.value:
        raise OwnerCannotLeave(owner_message)
    if OrganizationRole(m.role) in LEADER_ROLES:
        await _guard_last_leader(m, session)
    await compare_and_swap(session, m, status=MembershipStatus.LEFT.value)


async def leave_organization(
    caller: Caller, org_id: uuid.UUID, session: AsyncSession
) -> OrganizationMember:
    """The caller leaves an organization. Owners must transfer ownership first."""
    m = await find_membership(caller.user_id, org_id, session)
    if not m:
        raise NotFound("You are not a member of this organization")
    authorize(caller, Action.LEAVE_ORGANIZATION, _resource(m))

    await _depart(
        m,
        session,
        "As the owner you cannot leave the organization. Transfer ownership first.",
    )
    log.info("membership.left", membership_id=str(m.id), org_id=str(org_id), user_id=str(caller.user_id))
    return m


async def remove_member(
    caller: Caller, user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> OrganizationMember:
    """Admin-initiated removal; same end state and safeguards as leaving."""
    m = await _require_membership(user_id, org_id, session)
    authorize(caller, Action.REMOVE_MEMBER, _resource(m))

    await _depart(m, session, "The organization owner cannot be removed.")
    log.info(
        "membership.removed",
        membership_id=str(m.id),
        org_id=str(org_id),
        user_id=str(user_id),
        by=str(caller.user_id),
    )
    return m


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _member_row(m: OrganizationMember, user: User, org_name: str) -> dict:
    return {
        "id": m.id,
        "user_id": m.user_id,
        "org_id": m.org_id,
        "role": m.role,
        "status": m.status,
        "joined_at": m.joined_at,
        "rejection_reason": m.rejection_reason,
        "name": user.name,
        "email": user.email,
        "phone_number": user.phone_number,
        "org_name": org_name,
    }


async def list_organization_members(
    caller: Caller,
    org_id: uuid.UUID,
    session: AsyncSession,
    status: Optional[MembershipStatus] = None,
) -> list[dict]:
    org = await org_store.get_organization(org_id, session)
    authorize(caller, Action.VIEW_ORGANIZATION_MEMBERS, Resource(kind="organization", org_id=org_id))

    query = (
        select(OrganizationMember, User)
        .join(User, User.id == OrganizationMember.user_id)
        .where(OrganizationMember.org_id == org_id)
        .order_by(User.name)
    )
    if status is not None:
        query = query.where(OrganizationMember.status == status.value)
    result = await session.execute(query)
    return [_member_row(m, user, org.name) for m, user in result.all()]


async def list_pending_memberships(caller: Caller, session: AsyncSession) -> list[dict]:
    """Pending join requests in every organization the caller leads (all for sys_admin)."""
    query = (
        select(OrganizationMember, User, Organization.name)
        .join(User, User.id == OrganizationMember.user_id)
        .join(Organization, Organization.id == OrganizationMember.org_id)
        .where(OrganizationMember.status == MembershipStatus.PENDING.value)
        .order_by(OrganizationMember.joined_at)
    )
    if not caller.is_sys_admin:
        led = caller.approved_org_ids(LEADER_ROLES)
        if not led:
            return []
        query = query.where(OrganizationMember.org_id.in_(led))

    result = await session.execute(query)
    return [_member_row(m, user, org_name) for m, user, org_name in result.all()]
