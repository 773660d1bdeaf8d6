"""Enrollment plans, the terms they unlock, and which semester tab is showing."""

from __future__ import annotations

import logging
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from .records import EnrollmentEntry, UserRecord
from .semester import Term

LOGGER = logging.getLogger("edportal.enrollment")


class Tab(str, Enum):
    FALL = "fall"
    SPRING = "spring"
    ALL = "all"


TAB_ORDER: Tuple[Tab, ...] = (Tab.FALL, Tab.SPRING, Tab.ALL)


class EnrollmentPlan(str, Enum):
    """Values stored under ``guidanceDetails.plan`` on a course enrollment."""

    FULL_YEAR = "Full Year"
    FALL_ONLY = "Fall Semester"
    SPRING_ONLY = "Spring Semester"

    @classmethod
    def parse(cls, value: "EnrollmentPlan | str") -> "EnrollmentPlan":
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        try:
            return cls(text)
        except ValueError:
            alias = _PLAN_ALIASES.get(text)
            if alias is None:
                raise
            return alias


_PLAN_ALIASES = {
    "FullYear": EnrollmentPlan.FULL_YEAR,
    "FallOnly": EnrollmentPlan.FALL_ONLY,
    "SpringOnly": EnrollmentPlan.SPRING_ONLY,
}


class FallbackPolicy(str, Enum):
    """What to show when enrollment data cannot be trusted.

    Applies to unrecognized plan values and to permitted-term sets that grant
    no concrete term at all.
    """

    SHOW_ALL = "show_all"
    SHOW_NOTHING = "show_nothing"


class PermittedTerms(BaseModel):
    """Concrete terms a viewer may open, or the unrestricted sentinel."""

    model_config = ConfigDict(frozen=True)

    terms: FrozenSet[Term] = frozenset()
    unrestricted: bool = False

    def allows(self, term: Term) -> bool:
        return self.unrestricted or term in self.terms

    @property
    def is_empty(self) -> bool:
        return not self.unrestricted and not (self.terms & CONCRETE_TERMS)

    def effective(self, fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL) -> "PermittedTerms":
        """Resolve a malformed empty grant through ``fallback``."""
        if self.is_empty and fallback is FallbackPolicy.SHOW_ALL:
            return UNRESTRICTED
        return self


CONCRETE_TERMS: FrozenSet[Term] = frozenset({Term.FALL, Term.SPRING})
UNRESTRICTED = PermittedTerms(unrestricted=True)
NOTHING = PermittedTerms()

PLAN_TERMS = {
    EnrollmentPlan.FULL_YEAR: frozenset({Term.FALL, Term.SPRING}),
    EnrollmentPlan.FALL_ONLY: frozenset({Term.FALL}),
    EnrollmentPlan.SPRING_ONLY: frozenset({Term.SPRING}),
}


def resolve_permitted_terms(
    plan: EnrollmentPlan | str | None,
    *,
    fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL,
) -> PermittedTerms:
    """Map an enrollment plan to the terms it grants.

    An unset plan means an unrestricted viewer (administrators, or no
    enrollment data). Unrecognized plan values go through ``fallback``.
    """
    if plan is None or (isinstance(plan, str) and not plan.strip()):
        return UNRESTRICTED
    try:
        parsed = EnrollmentPlan.parse(plan)
    except ValueError:
        LOGGER.warning("Unrecognized enrollment plan %r; applying %s", plan, fallback.value)
        return UNRESTRICTED if fallback is FallbackPolicy.SHOW_ALL else NOTHING
    return PermittedTerms(terms=PLAN_TERMS[parsed])


def visible_tabs(
    permitted: PermittedTerms,
    *,
    fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL,
) -> Tuple[Tab, ...]:
    effective = permitted.effective(fallback)
    if effective.unrestricted:
        return TAB_ORDER
    tabs: List[Tab] = [tab for tab in (Tab.FALL, Tab.SPRING) if Term(tab.value) in effective.terms]
    if tabs:
        tabs.append(Tab.ALL)
    return tuple(tabs)


def default_active_tab(visible: Sequence[Tab]) -> Optional[Tab]:
    return visible[0] if visible else None


def reconcile_active_tab(active: Optional[Tab], visible: Sequence[Tab]) -> Optional[Tab]:
    """Keep ``active`` while it is still visible, otherwise fall to the first visible tab."""
    if active is not None and active in visible:
        return active
    return default_active_tab(visible)


def course_ref_matches(course_ref: str, course_id: str) -> bool:
    """Loose match used by stored enrollments (``courses/<id>`` paths or bare ids)."""
    if not course_ref or not course_id:
        return False
    if course_ref in (course_id, f"courses/{course_id}"):
        return True
    if course_id in course_ref:
        return True
    parts = course_ref.split("/")
    return len(parts) > 1 and bool(parts[1]) and parts[1] in course_id


def find_course_enrollment(user: UserRecord, course_id: str) -> Optional[EnrollmentEntry]:
    exact = [entry for entry in user.enrollments if entry.course_id == course_id]
    if exact:
        return exact[0]
    for entry in user.enrollments:
        if course_ref_matches(entry.course_ref, course_id):
            return entry
    return None


def enrollment_plan_for(user: UserRecord, course_id: str) -> Optional[str]:
    entry = find_course_enrollment(user, course_id)
    return entry.plan if entry else None


def enrolled_course_ids(user: UserRecord) -> List[str]:
    return [entry.course_id for entry in user.enrollments if entry.course_id]


__all__ = [
    "CONCRETE_TERMS",
    "EnrollmentPlan",
    "FallbackPolicy",
    "NOTHING",
    "PermittedTerms",
    "TAB_ORDER",
    "Tab",
    "UNRESTRICTED",
    "course_ref_matches",
    "default_active_tab",
    "enrolled_course_ids",
    "enrollment_plan_for",
    "find_course_enrollment",
    "reconcile_active_tab",
    "resolve_permitted_terms",
    "visible_tabs",
]
