"""
Domain error taxonomy.

Every engine failure is a caller-correctable condition carrying a stable code
and a message suitable for direct display. The HTTP boundary maps them to
status codes; persistence faults are not wrapped and propagate as-is.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class DomainError(Exception):
    code = "DOMAIN_ERROR"
    status_code = 400
    default_message = "The request could not be completed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "status": self.status_code,
            }
        }


class NotFound(DomainError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "The requested resource does not exist."


class AlreadyRequested(DomainError):
    code = "ALREADY_REQUESTED"
    status_code = 409
    default_message = "You have already applied or are already a member."


class NoNewApplications(AlreadyRequested):
    code = "NO_NEW_APPLICATIONS"
    default_message = "You have already applied to every selected work area."


class AlreadyExists(DomainError):
    code = "ALREADY_EXISTS"
    status_code = 409
    default_message = "A resource with this name already exists."


class WorkAreaInUse(DomainError):
    code = "WORK_AREA_IN_USE"
    status_code = 409
    default_message = "This work area still has applications and cannot be deleted."


class InvalidTransition(DomainError):
    code = "INVALID_TRANSITION"
    status_code = 409
    default_message = "This change is not possible from the current state."


class Forbidden(DomainError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "You do not have permission to perform this action."


class LastLeaderProtected(DomainError):
    code = "LAST_LEADER_PROTECTED"
    status_code = 409
    default_message = "The last leader of an organization cannot be demoted or removed."


class OwnerCannotLeave(DomainError):
    code = "OWNER_CANNOT_LEAVE"
    status_code = 409
    default_message = "The organization owner cannot leave; transfer ownership first."


class LastSysAdminProtected(DomainError):
    code = "LAST_SYS_ADMIN_PROTECTED"
    status_code = 409
    default_message = "The last system administrator cannot be demoted."


class ConcurrentModification(DomainError):
    code = "CONCURRENT_MODIFICATION"
    status_code = 409
    default_message = "The record was changed by someone else. Reload and try again."


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"
    status_code = 422
    default_message = "The request is malformed."


class Unauthenticated(DomainError):
    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "Authentication required."


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render a DomainError as the standard JSON error envelope."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
