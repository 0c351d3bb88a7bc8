from enum import Enum

from pydantic import BaseModel


class GlobalRole(str, Enum):
    SYS_ADMIN = "sys_admin"
    USER = "user"


class OrganizationRole(str, Enum):
    OWNER = "owner"
    ORGANIZER = "organizer"
    COORDINATOR = "coordinator"
    VOLUNTEER = "volunteer"


class MembershipStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    LEFT = "left"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class DecisionOutcome(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class QuestionType(str, Enum):
    TEXT = "text"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"


# Roles that may approve/reject within an organization
LEADER_ROLES: frozenset[OrganizationRole] = frozenset(
    {OrganizationRole.OWNER, OrganizationRole.ORGANIZER}
)

ADMIN_ROLES: frozenset[OrganizationRole] = LEADER_ROLES | {OrganizationRole.COORDINATOR}

ALL_ROLES: frozenset[OrganizationRole] = frozenset(OrganizationRole)

# Valid state transitions for a membership row
MEMBERSHIP_TRANSITIONS: dict[MembershipStatus, list[MembershipStatus]] = {
    MembershipStatus.PENDING: [MembershipStatus.APPROVED, MembershipStatus.REJECTED],
    MembershipStatus.APPROVED: [MembershipStatus.LEFT],
    MembershipStatus.REJECTED: [MembershipStatus.PENDING],
    MembershipStatus.LEFT: [MembershipStatus.PENDING],
}

# Valid state transitions for an application ticket (admin view)
APPLICATION_TRANSITIONS: dict[ApplicationStatus, list[ApplicationStatus]] = {
    ApplicationStatus.PENDING: [
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    ],
    ApplicationStatus.APPROVED: [ApplicationStatus.PENDING, ApplicationStatus.WITHDRAWN],
    ApplicationStatus.REJECTED: [ApplicationStatus.PENDING, ApplicationStatus.WITHDRAWN],
    ApplicationStatus.WITHDRAWN: [],
}


class ErrorBody(BaseModel):
    code: str
    message: str
    status: int


class ErrorResponse(BaseModel):
    error: ErrorBody
