"""
Optimistic concurrency and aggregate locking helpers.

Versioned rows (memberships, application tickets) are only ever written with
compare-and-swap: the UPDATE matches on the version that was read, so a
concurrent writer that committed first turns the second write into a no-op,
which is reported as ConcurrentModification.
"""

from __future__ import annotations

import uuid
from typing import Any, TypeVar

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from volunteer_hub.core.errors import ConcurrentModification, NotFound
from volunteer_hub.models.organization import Organization
from volunteer_hub.models.user import User

log = structlog.get_logger()

T = TypeVar("T")


async def compare_and_swap(session: AsyncSession, row: T, **values: Any) -> T:
    """Apply ``values`` to ``row`` only if its version is unchanged in the store."""
    model = type(row)
    seen = row.version
    result = await session.execute(
        update(model)
        .where(model.id == row.id, model.version == seen)
        .values(version=seen + 1, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        log.warning(
            "cas.conflict",
            table=model.__tablename__,
            row_id=str(row.id),
            seen_version=seen,
        )
        raise ConcurrentModification()

    await session.refresh(row)
    return row


async def lock_organization(session: AsyncSession, org_id: uuid.UUID) -> Organization:
    """Lock the organization row; serializes changes to its leader composition."""
    result = await session.execute(
        select(Organization)
        .where(Organization.id == org_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    org = result.scalar_one_or_none()
    if not org:
        raise NotFound("Organization not found")
    return org


async def lock_sys_admins(session: AsyncSession) -> list[User]:
    """Lock every sys_admin user row; serializes global role demotions."""
    result = await session.execute(
        select(User).where(User.global_role == "sys_admin").with_for_update()
    )
    return list(result.scalars().all())
