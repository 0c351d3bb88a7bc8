"""
Caller identity for Volunteer Hub.

Tokens are issued by the identity provider; this module only verifies them
(HS256 JWT whose ``sub`` is the user id) and turns the user plus all of their
membership rows into a ``Caller`` for the authorization resolver.
"""

from __future__ import annotations

import uuid
from typing import Optional

import jwt
import structlog
from fastapi import Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from volunteer_hub.core.config import get_settings
from volunteer_hub.core.database import get_session
from volunteer_hub.core.errors import Unauthenticated
from volunteer_hub.core.permissions import Caller, MembershipGrant
from volunteer_hub.models.organization_member import OrganizationMember
from volunteer_hub.models.user import User
from volunteer_hub_shared.schemas.common import (
    GlobalRole,
    MembershipStatus,
    OrganizationRole,
)

log = structlog.get_logger()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    settings = get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def user_id_from_token(token: str) -> uuid.UUID:
    try:
        payload = decode_jwt(token)
        return uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise Unauthenticated("Invalid or expired session")


# ---------------------------------------------------------------------------
# Caller loading
# ---------------------------------------------------------------------------

class AuthenticatedUser:
    """Container for an authenticated user + the caller view used for authorization."""

    def __init__(self, user: User, caller: Caller):
        self.user = user
        self.caller = caller
        self.user_id = user.id
        self.global_role = caller.global_role


async def load_caller(user_id: uuid.UUID, session: AsyncSession) -> AuthenticatedUser:
    """Load a user and every membership row they hold."""
    user = await session.get(User, user_id)
    if not user:
        raise Unauthenticated("User not found")

    result = await session.execute(
        select(OrganizationMember).where(OrganizationMember.user_id == user_id)
    )
    grants = tuple(
        MembershipGrant(
            org_id=m.org_id,
            role=OrganizationRole(m.role),
            status=MembershipStatus(m.status),
        )
        for m in result.scalars().all()
    )
    caller = Caller(
        user_id=user.id,
        global_role=GlobalRole(user.global_role),
        memberships=grants,
    )
    return AuthenticatedUser(user=user, caller=caller)


async def get_authenticated_user(
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Main authentication dependency: Bearer JWT in the Authorization header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated()

    user_id = user_id_from_token(authorization[7:].strip())
    auth = await load_caller(user_id, session)
    log.debug("auth.resolved", user_id=str(user_id), memberships=len(auth.caller.memberships))
    return auth
