"""Contracts for the services the portal reads from.

Authentication, the document database and the YouTube client live outside
this package; anything satisfying these protocols can back the page
controller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

from edportal.academics.records import (
    Assignment,
    Attachment,
    CourseRecord,
    ProgramRegistration,
    QuizResult,
    UserRecord,
    UserRole,
    Video,
)


@dataclass(frozen=True)
class VideoSource:
    """Videos for a course, either one playlist or one playlist per semester."""

    videos: Tuple[Video, ...] = ()
    fall: Tuple[Video, ...] = ()
    spring: Tuple[Video, ...] = ()
    by_semester: bool = False


class IdentityProvider(Protocol):
    def get_current_user_id(self) -> Optional[str]: ...

    def get_user_role(self, user_id: Optional[str]) -> Optional[UserRole]: ...

    def get_user_enrollment_plan(self, user_id: str, course_id: str) -> Optional[str]: ...


class CourseContentProvider(Protocol):
    def list_courses(self) -> List[CourseRecord]: ...

    def get_course(self, course_id: str) -> Optional[CourseRecord]: ...

    def get_course_attachments(self, course_id: str) -> List[Attachment]: ...

    def get_course_videos(self, course: CourseRecord) -> VideoSource: ...


class AssignmentResultsProvider(Protocol):
    def get_assignments(self, course_id: str) -> List[Assignment]: ...

    def get_results(self, course_id: str) -> Dict[str, List[QuizResult]]: ...


class RosterProvider(Protocol):
    def get_enrolled_students(self, course_id: str) -> List[UserRecord]: ...


class ProgramProvider(Protocol):
    def get_program_registrations(self) -> List[ProgramRegistration]: ...


class PortalProviders(CourseContentProvider, AssignmentResultsProvider, RosterProvider, ProgramProvider, Protocol):
    """Everything the page controller needs apart from identity."""

    def get_user(self, user_id: str) -> Optional[UserRecord]: ...


__all__ = [
    "AssignmentResultsProvider",
    "CourseContentProvider",
    "IdentityProvider",
    "PortalProviders",
    "ProgramProvider",
    "RosterProvider",
    "VideoSource",
]
