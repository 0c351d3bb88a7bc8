"""
User API endpoints.

GET    /api/v1/users                      — All users (sys_admin)
GET    /api/v1/users/me                   — Own profile with memberships
PUT    /api/v1/users/me                   — Edit own name and phone number
PUT    /api/v1/users/{userId}/global-role — Change a user's global role (sys_admin)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.auth import AuthenticatedUser, get_authenticated_user
from volunteer_hub.core.database import get_session
from volunteer_hub.services import users as user_service
from volunteer_hub_shared.schemas.users import (
    GlobalRoleChangeRequest,
    ProfileMembership,
    ProfileResponse,
    ProfileUpdateRequest,
    UserListResponse,
    UserResponse,
)

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    users = await user_service.list_users(auth.caller, session)
    return UserListResponse(data=[UserResponse.model_validate(u) for u in users])


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """The caller's profile, including rejection reasons on their memberships."""
    profile = await user_service.get_profile(auth.user_id, session)
    return ProfileResponse(
        user=UserResponse.model_validate(profile["user"]),
        memberships=[ProfileMembership(**m) for m in profile["memberships"]],
    )


@router.put("/me", response_model=UserResponse)
async def update_me(
    body: ProfileUpdateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.update_profile(auth.caller, body, session)
    return UserResponse.model_validate(user)


@router.put("/{userId}/global-role", response_model=UserResponse)
async def change_global_role(
    userId: uuid.UUID,
    body: GlobalRoleChangeRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Promote or demote a user (sys_admin only). The last sys_admin cannot be demoted."""
    user = await user_service.change_global_role(auth.caller, userId, body.role, session)
    return UserResponse.model_validate(user)
