"""
Organization service — organization records, catalog, and invite codes.
"""

from __future__ import annotations

import secrets
import uuid
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from volunteer_hub.core.errors import AlreadyExists, NotFound
from volunteer_hub.models.organization import Organization
from volunteer_hub.models.organization_member import OrganizationMember
from volunteer_hub.models.user import User
from volunteer_hub.services import memberships
from volunteer_hub_shared.schemas.organizations import OrgCreateRequest

log = structlog.get_logger()

INVITE_CODE_BYTES = 6


def generate_invite_code() -> str:
    """Short URL-safe lookup code handed out by organizers."""
    return secrets.token_urlsafe(INVITE_CODE_BYTES)


async def create_organization(
    req: OrgCreateRequest,
    creator: User,
    session: AsyncSession,
) -> Organization:
    """Create an organization and make the creator its approved owner."""
    if await find_organization_by_name(req.name, session):
        raise AlreadyExists("Organization name already taken")

    org = Organization(
        name=req.name,
        invite_code=generate_invite_code(),
        description=req.description,
        address=req.address,
        email=req.email,
        phone=req.phone,
    )
    try:
        async with session.begin_nested():
            session.add(org)
    except IntegrityError:
        # lost the name to a concurrent create
        raise AlreadyExists("Organization name already taken")

    await memberships.bootstrap_founder(creator.id, org.id, session)

    log.info("org.created", org_id=str(org.id), name=org.name, creator=str(creator.id))
    return org


async def get_organization(org_id: uuid.UUID, session: AsyncSession) -> Organization:
    org = await session.get(Organization, org_id)
    if not org:
        raise NotFound("Organization not found")
    return org


async def find_organization_by_name(name: str, session: AsyncSession) -> Optional[Organization]:
    result = await session.execute(select(Organization).where(Organization.name == name))
    return result.scalar_one_or_none()


async def get_organization_by_invite_code(code: str, session: AsyncSession) -> Organization:
    result = await session.execute(
        select(Organization).where(Organization.invite_code == code)
    )
    org = result.scalar_one_or_none()
    if not org:
        raise NotFound("No organization uses this invite code")
    return org


async def list_organizations(session: AsyncSession) -> list[Organization]:
    """The public catalog a user browses before joining."""
    result = await session.execute(select(Organization).order_by(Organization.name))
    return list(result.scalars().all())


async def list_user_organizations(
    user_id: uuid.UUID, session: AsyncSession
) -> list[dict]:
    """Organizations the user has a membership row in, with role and status."""
    result = await session.execute(
        select(Organization, OrganizationMember)
        .join(OrganizationMember, OrganizationMember.org_id == Organization.id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(Organization.name)
    )
    return [
        {
            "id": org.id,
            "name": org.name,
            "description": org.description,
            "role": membership.role,
            "status": membership.status,
        }
        for org, membership in result.all()
    ]
