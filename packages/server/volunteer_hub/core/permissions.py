"""
Authorization resolver.

One decision table answers "may this caller perform this action on this
resource?" for every engine operation. The caller's effective permission is
computed from three inputs, in order:

1. Global role: a ``sys_admin`` is allowed everything.
2. Scoped role: an approved membership in the organization that owns the
   resource (directly, or through an event) whose role is in the action's
   role set.
3. Ownership: the user a record belongs to may perform a small set of
   self-service actions on it, and never the administrative ones.

``resolve`` is pure and never raises for a denial; ``authorize`` is the
convenience wrapper engines use to turn a denial into ``Forbidden``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from volunteer_hub.core.errors import Forbidden
from volunteer_hub_shared.schemas.common import (
    ADMIN_ROLES,
    ALL_ROLES,
    LEADER_ROLES,
    GlobalRole,
    MembershipStatus,
    OrganizationRole,
)


class Action(str, Enum):
    VIEW_ORGANIZATION_MEMBERS = "view_organization_members"
    DECIDE_MEMBERSHIP = "decide_membership"
    CHANGE_MEMBER_ROLE = "change_member_role"
    REMOVE_MEMBER = "remove_member"
    LEAVE_ORGANIZATION = "leave_organization"
    MANAGE_EVENTS = "manage_events"
    VIEW_EVENTS = "view_events"
    APPLY_TO_EVENT = "apply_to_event"
    VIEW_EVENT_APPLICATIONS = "view_event_applications"
    DECIDE_APPLICATION = "decide_application"
    SET_APPLICATION_NOTE = "set_application_note"
    SEND_BULK_MESSAGE = "send_bulk_message"
    WITHDRAW_APPLICATION = "withdraw_application"
    RESET_APPLICATION = "reset_application"
    CHANGE_GLOBAL_ROLE = "change_global_role"
    LIST_USERS = "list_users"


class SubjectRule(str, Enum):
    NONE = "none"  # ownership grants nothing
    ALLOW = "allow"  # the record's own user may act
    NEVER = "never"  # the record's own user is denied, whatever their role


@dataclass(frozen=True)
class Rule:
    roles: frozenset[OrganizationRole] = frozenset()
    subject: SubjectRule = SubjectRule.NONE


DECISION_TABLE: dict[Action, Rule] = {
    Action.VIEW_ORGANIZATION_MEMBERS: Rule(LEADER_ROLES),
    Action.DECIDE_MEMBERSHIP: Rule(LEADER_ROLES, SubjectRule.NEVER),
    Action.CHANGE_MEMBER_ROLE: Rule(LEADER_ROLES),
    Action.REMOVE_MEMBER: Rule(LEADER_ROLES, SubjectRule.NEVER),
    Action.LEAVE_ORGANIZATION: Rule(subject=SubjectRule.ALLOW),
    Action.MANAGE_EVENTS: Rule(LEADER_ROLES),
    Action.VIEW_EVENTS: Rule(ALL_ROLES),
    Action.APPLY_TO_EVENT: Rule(ALL_ROLES),
    Action.VIEW_EVENT_APPLICATIONS: Rule(ADMIN_ROLES),
    Action.DECIDE_APPLICATION: Rule(ADMIN_ROLES, SubjectRule.NEVER),
    Action.SET_APPLICATION_NOTE: Rule(LEADER_ROLES),
    Action.SEND_BULK_MESSAGE: Rule(LEADER_ROLES),
    Action.WITHDRAW_APPLICATION: Rule(subject=SubjectRule.ALLOW),
    Action.RESET_APPLICATION: Rule(ADMIN_ROLES, SubjectRule.ALLOW),
    Action.CHANGE_GLOBAL_ROLE: Rule(),
    Action.LIST_USERS: Rule(),
}


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MembershipGrant:
    org_id: uuid.UUID
    role: OrganizationRole
    status: MembershipStatus


@dataclass(frozen=True)
class Caller:
    """An authenticated user together with all of their membership rows."""

    user_id: uuid.UUID
    global_role: GlobalRole
    memberships: tuple[MembershipGrant, ...] = ()

    @property
    def is_sys_admin(self) -> bool:
        return self.global_role == GlobalRole.SYS_ADMIN

    def approved_role_in(self, org_id: uuid.UUID) -> Optional[OrganizationRole]:
        for grant in self.memberships:
            if grant.org_id == org_id and grant.status == MembershipStatus.APPROVED:
                return grant.role
        return None

    def approved_org_ids(self, roles: frozenset[OrganizationRole] = ALL_ROLES) -> list[uuid.UUID]:
        return [
            g.org_id
            for g in self.memberships
            if g.status == MembershipStatus.APPROVED and g.role in roles
        ]


@dataclass(frozen=True)
class Resource:
    """The target of an action: its kind, owning organization and record subject."""

    kind: str
    org_id: Optional[uuid.UUID] = None
    subject_user_id: Optional[uuid.UUID] = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Allowed:
    allowed: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Denied:
    code: str
    reason: str
    allowed: bool = field(default=False, init=False)


Decision = Union[Allowed, Denied]


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve(caller: Caller, action: Action, resource: Resource) -> Decision:
    """Decide whether ``caller`` may perform ``action`` on ``resource``."""
    if caller.is_sys_admin:
        return Allowed()

    rule = DECISION_TABLE[action]
    is_subject = (
        resource.subject_user_id is not None
        and resource.subject_user_id == caller.user_id
    )

    if is_subject and rule.subject == SubjectRule.NEVER:
        return Denied("SELF_ACTION", "You cannot make this decision about your own record.")
    if is_subject and rule.subject == SubjectRule.ALLOW:
        return Allowed()

    if not rule.roles:
        if rule.subject == SubjectRule.ALLOW:
            return Denied("NOT_OWNER", "Only the owner of this record can do this.")
        return Denied("SYS_ADMIN_REQUIRED", "Only a system administrator can do this.")

    if resource.org_id is None:
        return Denied("NO_SCOPE", "This resource does not belong to an organization.")

    role = caller.approved_role_in(resource.org_id)
    if role is None:
        return Denied("NOT_A_MEMBER", "You are not an approved member of this organization.")
    if role not in rule.roles:
        return Denied(
            "ROLE_TOO_LOW",
            f"Your role '{role.value}' does not allow this action in this organization.",
        )
    return Allowed()


def authorize(caller: Caller, action: Action, resource: Resource) -> None:
    """Raise Forbidden unless ``resolve`` allows the action."""
    decision = resolve(caller, action, resource)
    if isinstance(decision, Denied):
        raise Forbidden(decision.reason)


def is_allowed(caller: Caller, action: Action, resource: Resource) -> bool:
    return isinstance(resolve(caller, action, resource), Allowed)
