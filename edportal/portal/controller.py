"""Course page state: one load per course, grades on first visit of the tab.

The controller is the only stateful piece of the portal. It pulls role,
enrollment and raw content from the providers, runs the pure derivations in
``edportal.academics`` and keeps the result until a refresh is requested.
Provider failures never escape ``load`` or ``open_tab``; they become empty
content plus a notice on the page view.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

from edportal.academics.enrollment import (
    NOTHING,
    UNRESTRICTED,
    FallbackPolicy,
    PermittedTerms,
    Tab,
    enrolled_course_ids,
    resolve_permitted_terms,
)
from edportal.academics.grades import (
    RosterExpansion,
    SelfGradeReport,
    StudentGradeSummary,
    build_roster_grades,
    build_self_grades,
)
from edportal.academics.partition import (
    TabbedContent,
    build_tabbed_content,
    chronological_descending,
    class_priority,
    dedupe_courses,
    partition,
    partition_playlists,
)
from edportal.academics.programs import ProgramStats, summarize_programs
from edportal.academics.records import CourseRecord
from edportal.core.errors import CollaboratorError, CourseNotFound
from edportal.providers.interfaces import IdentityProvider, PortalProviders, VideoSource

from .viewer import ANONYMOUS, Capability, Viewer

LOGGER = logging.getLogger("edportal.controller")

T = TypeVar("T")


class PageTab(str, Enum):
    OVERVIEW = "overview"
    SYLLABUS = "syllabus"
    GRADES = "grades"
    ASSIGNMENTS = "assignments"
    ATTACHMENTS = "attachments"
    VIDEOS = "videos"
    ATTENDANCE = "attendance"


@dataclass
class GradesView:
    """Grades for the current viewer: their own report, or the roster."""

    self_report: Optional[SelfGradeReport] = None
    roster: Tuple[StudentGradeSummary, ...] = ()
    expansion: Optional[RosterExpansion] = None

    @property
    def is_roster(self) -> bool:
        return self.expansion is not None


@dataclass
class CoursePageView:
    course: Optional[CourseRecord]
    permitted: PermittedTerms = UNRESTRICTED
    attachments: TabbedContent = field(default_factory=TabbedContent)
    videos: TabbedContent = field(default_factory=TabbedContent)
    notices: List[str] = field(default_factory=list)
    active_tab: PageTab = PageTab.OVERVIEW
    grades: Optional[GradesView] = None


class CoursePageController:
    """Page-load state for one signed-in user."""

    def __init__(
        self,
        providers: PortalProviders,
        identity: IdentityProvider,
        *,
        fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL,
    ) -> None:
        self.providers = providers
        self.identity = identity
        self.fallback = fallback
        self._viewer: Optional[Viewer] = None
        self._views: Dict[str, CoursePageView] = {}
        # Requests for one user may arrive on several worker threads.
        self._lock = threading.RLock()

    @property
    def viewer(self) -> Viewer:
        with self._lock:
            if self._viewer is None or not self._viewer.is_resolved:
                self._viewer = self._resolve_viewer()
            return self._viewer

    def _resolve_viewer(self) -> Viewer:
        user_id = self.identity.get_current_user_id()
        if not user_id:
            return ANONYMOUS
        try:
            role = self.identity.get_user_role(user_id)
        except CollaboratorError as exc:
            LOGGER.warning("Role lookup failed for %s: %s", user_id, exc.message)
            role = None
        return Viewer.for_role(user_id, role)

    def _guarded(self, notices: List[str], label: str, fetch: Callable[[], T], default: T) -> T:
        try:
            return fetch()
        except CollaboratorError as exc:
            LOGGER.warning("Could not load %s: %s", label, exc.message)
            notices.append(f"Could not load {label}.")
            return default

    # ============== Page load ==============

    def load(self, course_id: str, *, refresh: bool = False) -> CoursePageView:
        """Return the page view for ``course_id``, fetching only on first load or refresh."""
        with self._lock:
            return self._load(course_id, refresh=refresh)

    def _load(self, course_id: str, *, refresh: bool) -> CoursePageView:
        cached = self._views.get(course_id)
        if cached is not None and not refresh:
            LOGGER.debug("Course %s already loaded; reusing view", course_id)
            return cached

        notices: List[str] = []
        course = self._guarded(notices, "course", lambda: self.providers.get_course(course_id), None)
        if course is None and not notices:
            raise CourseNotFound(f"Course {course_id} not found", error_code="course_not_found")
        if course is None:
            view = CoursePageView(course=None, notices=notices)
            self._views[course_id] = view
            return view

        permitted = self._permitted_terms(course_id, notices)
        attachments = self._guarded(
            notices,
            "attachments",
            lambda: self.providers.get_course_attachments(course_id),
            [],
        )
        videos = self._guarded(notices, "videos", lambda: self.providers.get_course_videos(course), VideoSource())

        attachment_buckets = partition(attachments, permitted, chronological_descending, fallback=self.fallback)
        if videos.by_semester:
            video_buckets = partition_playlists(
                videos.fall,
                videos.spring,
                permitted,
                class_priority,
                fallback=self.fallback,
            )
        else:
            video_buckets = partition(videos.videos, permitted, class_priority, fallback=self.fallback)

        view = CoursePageView(
            course=course,
            permitted=permitted,
            attachments=build_tabbed_content(
                attachment_buckets,
                permitted,
                fallback=self.fallback,
                active=cached.attachments.active_tab if cached else None,
            ),
            videos=build_tabbed_content(
                video_buckets,
                permitted,
                fallback=self.fallback,
                active=cached.videos.active_tab if cached else None,
            ),
            notices=notices,
            active_tab=cached.active_tab if cached else PageTab.OVERVIEW,
        )
        self._views[course_id] = view
        LOGGER.info(
            "Loaded course %s for %s (attachments=%s, videos=%s)",
            course_id,
            self.viewer.user_id or "anonymous",
            attachment_buckets.counts(),
            video_buckets.counts(),
        )
        if view.active_tab is PageTab.GRADES:
            self._ensure_grades(course_id, view)
        return view

    def _permitted_terms(self, course_id: str, notices: List[str]) -> PermittedTerms:
        viewer = self.viewer
        if viewer.role != "student" or not viewer.user_id:
            return UNRESTRICTED
        try:
            plan = self.identity.get_user_enrollment_plan(viewer.user_id, course_id)
        except CollaboratorError as exc:
            LOGGER.warning("Could not load enrollment for %s: %s", viewer.user_id, exc.message)
            notices.append("Could not load enrollment.")
            return UNRESTRICTED if self.fallback is FallbackPolicy.SHOW_ALL else NOTHING
        return resolve_permitted_terms(plan, fallback=self.fallback)

    # ============== Tabs ==============

    def open_tab(self, course_id: str, tab: PageTab) -> CoursePageView:
        """Switch the page tab; the grades tab aggregates once per course load."""
        with self._lock:
            view = self.load(course_id)
            view.active_tab = tab
            if tab is PageTab.GRADES:
                self._ensure_grades(course_id, view)
            return view

    def select_semester(self, course_id: str, section: PageTab, tab: Tab) -> TabbedContent:
        """Switch the semester tab of the attachments or videos section; hidden tabs are ignored."""
        if section not in (PageTab.ATTACHMENTS, PageTab.VIDEOS):
            raise ValueError(f"{section.value} has no semester tabs")
        with self._lock:
            view = self.load(course_id)
            content = view.attachments if section is PageTab.ATTACHMENTS else view.videos
            if tab in content.visible_tabs:
                content = replace(content, active_tab=tab)
                if section is PageTab.ATTACHMENTS:
                    view.attachments = content
                else:
                    view.videos = content
            return content

    # ============== Grades ==============

    def _ensure_grades(self, course_id: str, view: CoursePageView) -> None:
        if view.grades is not None or view.course is None:
            return
        viewer = self.viewer
        if not viewer.is_resolved:
            LOGGER.debug("Grades for %s deferred until the viewer role is known", course_id)
            return

        assignments = self._guarded(view.notices, "assignments", lambda: self.providers.get_assignments(course_id), [])
        results = self._guarded(view.notices, "results", lambda: self.providers.get_results(course_id), {})

        if viewer.can(Capability.VIEW_ROSTER_GRADES):
            students = self._guarded(
                view.notices,
                "roster",
                lambda: self.providers.get_enrolled_students(course_id),
                [],
            )
            roster = build_roster_grades(assignments, results, students, course_id=course_id)
            view.grades = GradesView(roster=tuple(roster), expansion=RosterExpansion())
            LOGGER.info("Aggregated roster grades for %s (%s students)", course_id, len(roster))
        elif viewer.can(Capability.VIEW_OWN_GRADES):
            report = build_self_grades(assignments, results, viewer.user_id or "", course_id=course_id)
            view.grades = GradesView(self_report=report)
            LOGGER.info("Aggregated own grades for %s in %s (%s rows)", viewer.user_id, course_id, len(report.rows))

    def grades(self, course_id: str) -> GradesView:
        view = self.open_tab(course_id, PageTab.GRADES)
        return view.grades or GradesView()

    def toggle_student(self, course_id: str, student_id: str) -> Optional[str]:
        """Expand ``student_id`` in the roster, or collapse it when already open."""
        self.viewer.require(Capability.VIEW_ROSTER_GRADES)
        with self._lock:
            grades = self.grades(course_id)
            if grades.expansion is None:
                return None
            return grades.expansion.select(student_id)

    # ============== Listings ==============

    def list_courses(self) -> List[CourseRecord]:
        """Courses the viewer may open, one entry per (name, year)."""
        viewer = self.viewer
        if not viewer.user_id:
            return []
        try:
            courses = self.providers.list_courses()
            if viewer.can(Capability.VIEW_ALL_COURSES):
                return dedupe_courses(courses)
            user = self.providers.get_user(viewer.user_id)
        except CollaboratorError as exc:
            LOGGER.warning("Could not list courses for %s: %s", viewer.user_id, exc.message)
            return []
        if user is None:
            return []
        enrolled_ids = set(enrolled_course_ids(user))
        enrolled = [course for course in courses if course.id in enrolled_ids]
        return dedupe_courses(enrolled)

    def program_stats(self) -> List[ProgramStats]:
        self.viewer.require(Capability.VIEW_PROGRAMS)
        try:
            registrations = self.providers.get_program_registrations()
        except CollaboratorError as exc:
            LOGGER.warning("Could not load program registrations: %s", exc.message)
            return []
        return summarize_programs(registrations)


__all__ = ["CoursePageController", "CoursePageView", "GradesView", "PageTab"]
