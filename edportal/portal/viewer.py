"""Who is looking at the page and what their role lets them open.

Role checks happen once, when the viewer is built; pages ask the viewer for a
capability instead of comparing role strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from edportal.academics.records import UserRole
from edportal.core.errors import AuthorizationDenied


class Capability(str, Enum):
    VIEW_OWN_GRADES = "view_own_grades"
    VIEW_ROSTER_GRADES = "view_roster_grades"
    VIEW_ALL_COURSES = "view_all_courses"
    VIEW_PROGRAMS = "view_programs"


ROLE_CAPABILITIES = {
    "student": frozenset({Capability.VIEW_OWN_GRADES}),
    "admin": frozenset(
        {
            Capability.VIEW_ROSTER_GRADES,
            Capability.VIEW_ALL_COURSES,
            Capability.VIEW_PROGRAMS,
        }
    ),
}


@dataclass(frozen=True)
class Viewer:
    user_id: Optional[str]
    role: Optional[UserRole]
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)

    @classmethod
    def for_role(cls, user_id: Optional[str], role: Optional[UserRole]) -> "Viewer":
        return cls(user_id=user_id, role=role, capabilities=ROLE_CAPABILITIES.get(role or "", frozenset()))

    @property
    def is_resolved(self) -> bool:
        return bool(self.user_id) and self.role is not None

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        if not self.can(capability):
            raise AuthorizationDenied(
                f"Role {self.role or 'anonymous'!s} may not {capability.value.replace('_', ' ')}",
                error_code="forbidden",
                details={"user_id": self.user_id, "capability": capability.value},
            )


ANONYMOUS = Viewer(user_id=None, role=None)


__all__ = ["ANONYMOUS", "Capability", "ROLE_CAPABILITIES", "Viewer"]
