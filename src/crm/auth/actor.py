"""
Actor

The authenticated person behind a request, as asserted by the gateway.
"""

from dataclasses import dataclass
from typing import Optional

from ..deals.models import Role


@dataclass(frozen=True)
class Actor:
    """Operator (rep, admin or crew member) making a change."""

    id: str
    role: Role
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self) -> dict:
        return {"id": self.id, "role": self.role.value, "name": self.name}


# Used when AUTH_REQUIRED=false and no identity headers are sent
DEV_ACTOR = Actor(id="dev-admin", role=Role.ADMIN, name="Development Admin")
