"""
API v1 Router

Organization-scoped membership routes live under /orgs/{orgId}; tickets are
addressed directly by id under /applications.
"""

from fastapi import APIRouter

from volunteer_hub_shared.schemas.common import ErrorResponse

from . import applications, events, memberships, organizations, users

router = APIRouter(
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)

# memberships first: /orgs/join-by-code must win over /orgs/{orgId}
router.include_router(memberships.router, tags=["Memberships"])
router.include_router(organizations.router, prefix="/orgs", tags=["Organizations"])
router.include_router(events.router, tags=["Events"])
router.include_router(applications.router, prefix="/applications", tags=["Applications"])
router.include_router(users.router, prefix="/users", tags=["Users"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/orgs",
            "/orgs/{orgId}/members",
            "/memberships/pending",
            "/events",
            "/events/{eventId}/work-areas",
            "/applications/mine",
            "/users",
            "/users/me",
        ],
    }
