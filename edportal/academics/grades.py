"""Grade tables for a course: a student's own grades and the per-student roster."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .records import Assignment, QuizResult, UserRecord

UNKNOWN_STUDENT = "Unknown"

ResultsByAssignment = Mapping[str, Sequence[QuizResult]]


def percentage_of(score: float, max_points: float) -> Optional[float]:
    """Score as a percentage of ``max_points``; ``None`` when that is undefined."""
    if not math.isfinite(max_points) or max_points <= 0 or not math.isfinite(score):
        return None
    return score / max_points * 100.0


class GradeRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    assignment_id: str
    assignment_title: str
    score: float
    max_points: float
    submitted_at: Optional[datetime] = None

    @computed_field  # type: ignore[misc]
    @property
    def percentage(self) -> Optional[float]:
        return percentage_of(self.score, self.max_points)


class GradeTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = 0.0
    max_points: float = 0.0
    percentage: Optional[float] = None

    @classmethod
    def from_rows(cls, rows: Iterable[GradeRow]) -> "GradeTotals":
        score = 0.0
        max_points = 0.0
        for row in rows:
            score += row.score
            max_points += row.max_points
        return cls(score=score, max_points=max_points, percentage=percentage_of(score, max_points))


class SelfGradeReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    student_id: str
    rows: Tuple[GradeRow, ...] = ()
    totals: GradeTotals = Field(default_factory=GradeTotals)


class StudentGradeSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    student_id: str
    student_name: str
    rows: Tuple[GradeRow, ...] = ()
    totals: GradeTotals = Field(default_factory=GradeTotals)


def _course_assignments(assignments: Iterable[Assignment], course_id: Optional[str]) -> List[Assignment]:
    if course_id is None:
        return list(assignments)
    return [assignment for assignment in assignments if assignment.course_id == course_id]


def _grade_row(assignment: Assignment, result: QuizResult) -> GradeRow:
    return GradeRow(
        assignment_id=assignment.id,
        assignment_title=assignment.title,
        score=result.score,
        max_points=assignment.max_points,
        submitted_at=result.submitted_at,
    )


def build_self_grades(
    assignments: Iterable[Assignment],
    results: ResultsByAssignment,
    student_id: str,
    *,
    course_id: Optional[str] = None,
) -> SelfGradeReport:
    """Rows for the assignments ``student_id`` has a result for.

    Unsubmitted work is left out rather than counted as zero. When several
    results exist for the same assignment the first one wins.
    """
    rows: List[GradeRow] = []
    for assignment in _course_assignments(assignments, course_id):
        match = next(
            (result for result in results.get(assignment.id, ()) if result.student_id == student_id),
            None,
        )
        if match is not None:
            rows.append(_grade_row(assignment, match))
    return SelfGradeReport(student_id=student_id, rows=tuple(rows), totals=GradeTotals.from_rows(rows))


def build_roster_grades(
    assignments: Iterable[Assignment],
    results: ResultsByAssignment,
    enrolled_students: Iterable[UserRecord],
    *,
    course_id: Optional[str] = None,
) -> List[StudentGradeSummary]:
    """Group every enrolled student's results, in roster order.

    Results from students outside the roster are ignored and students without
    a single graded row are dropped from the output.
    """
    rows_by_student: Dict[str, List[GradeRow]] = {}
    names: Dict[str, str] = {}
    for student in enrolled_students:
        if not student.uid or student.uid in rows_by_student:
            continue
        rows_by_student[student.uid] = []
        names[student.uid] = resolve_display_name(student)

    for assignment in _course_assignments(assignments, course_id):
        for result in results.get(assignment.id, ()):
            student_rows = rows_by_student.get(result.student_id)
            if student_rows is not None:
                student_rows.append(_grade_row(assignment, result))

    return [
        StudentGradeSummary(
            student_id=student_id,
            student_name=names[student_id],
            rows=tuple(rows),
            totals=GradeTotals.from_rows(rows),
        )
        for student_id, rows in rows_by_student.items()
        if rows
    ]


def resolve_display_name(student: UserRecord) -> str:
    """Human-readable name for a roster entry; never empty."""
    first = student.profile_first_name.strip()
    last = student.profile_last_name.strip()
    if first and last:
        return f"{first} {last}"
    if first or last:
        return first or last
    if student.profile_name.strip():
        return student.profile_name.strip()

    email = student.email.strip()
    if email and "ID:" not in email and email not in student.uid:
        return email

    combined = f"{student.first_name} {student.last_name}".strip()
    if combined:
        return combined
    if student.display_name.strip():
        return student.display_name.strip()

    if "@" in student.uid and "ID:" not in student.uid:
        return student.uid
    return UNKNOWN_STUDENT


def toggle_expanded(current: Optional[str], selected: str) -> Optional[str]:
    """Selecting the open row closes it; selecting another row opens only that one."""
    return None if current == selected else selected


class RosterExpansion:
    """Which roster row is open. At most one at a time."""

    def __init__(self) -> None:
        self._expanded: Optional[str] = None

    @property
    def expanded(self) -> Optional[str]:
        return self._expanded

    def select(self, student_id: str) -> Optional[str]:
        self._expanded = toggle_expanded(self._expanded, student_id)
        return self._expanded

    def is_expanded(self, student_id: str) -> bool:
        return self._expanded == student_id


__all__ = [
    "GradeRow",
    "GradeTotals",
    "ResultsByAssignment",
    "RosterExpansion",
    "SelfGradeReport",
    "StudentGradeSummary",
    "UNKNOWN_STUDENT",
    "build_roster_grades",
    "build_self_grades",
    "percentage_of",
    "resolve_display_name",
    "toggle_expanded",
]
