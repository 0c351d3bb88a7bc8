# SQLModel definitions; imported here so metadata is populated for create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .organization_member import OrganizationMember  # noqa: F401
from .event import Event  # noqa: F401
from .work_area import WorkArea  # noqa: F401
from .event_question import EventQuestion  # noqa: F401
from .application import Application  # noqa: F401
