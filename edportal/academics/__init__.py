"""Pure derivations behind the course pages: terms, enrollment, buckets, grades."""

from .enrollment import (
    EnrollmentPlan,
    FallbackPolicy,
    PermittedTerms,
    Tab,
    resolve_permitted_terms,
    visible_tabs,
)
from .grades import (
    GradeRow,
    RosterExpansion,
    SelfGradeReport,
    StudentGradeSummary,
    build_roster_grades,
    build_self_grades,
    resolve_display_name,
)
from .partition import (
    TabbedContent,
    TermBuckets,
    chronological_descending,
    class_priority,
    dedupe_courses,
    partition,
    partition_playlists,
)
from .programs import ProgramStats, summarize_programs
from .semester import Term, classify

__all__ = [
    "EnrollmentPlan",
    "FallbackPolicy",
    "GradeRow",
    "PermittedTerms",
    "ProgramStats",
    "RosterExpansion",
    "SelfGradeReport",
    "StudentGradeSummary",
    "Tab",
    "TabbedContent",
    "Term",
    "TermBuckets",
    "build_roster_grades",
    "build_self_grades",
    "chronological_descending",
    "class_priority",
    "classify",
    "dedupe_courses",
    "partition",
    "partition_playlists",
    "resolve_display_name",
    "resolve_permitted_terms",
    "summarize_programs",
    "visible_tabs",
]
