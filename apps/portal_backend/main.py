from __future__ import annotations

import logging
import threading
import weakref
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from edportal import get_version
from edportal.academics.enrollment import FallbackPolicy, PermittedTerms, Tab
from edportal.academics.grades import SelfGradeReport, StudentGradeSummary
from edportal.academics.partition import TabbedContent
from edportal.academics.programs import ProgramStats
from edportal.academics.records import CourseRecord, TimedItem
from edportal.core.audit import AccessLogger, Decision
from edportal.core.config import PortalConfig, config_from_env
from edportal.core.errors import AuthorizationDenied, CollaboratorError, ConfigError, CourseNotFound
from edportal.portal.controller import CoursePageController, CoursePageView, PageTab
from edportal.portal.viewer import Capability, Viewer
from edportal.providers.document_store import DocumentStore

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_SNAPSHOT = REPO_ROOT / "config" / "sample_snapshot.yaml"
LOGGER = logging.getLogger("edportal.api")


class PortalSettings(BaseModel):
    """Runtime configuration for the portal backend."""

    title: str = "Course Portal API"
    snapshot_path: Path = Field(default=DEFAULT_SNAPSHOT)
    fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    audit_log: Path | None = None

    @classmethod
    def from_config(cls, config: PortalConfig) -> "PortalSettings":
        return cls(
            title=config.server.title,
            snapshot_path=config.data.snapshot_path,
            fallback=config.policy.fallback,
            cors_origins=config.server.cors_origins,
            audit_log=config.logging.audit_log,
        )


@lru_cache
def get_settings() -> PortalSettings:
    try:
        config = config_from_env()
    except ConfigError as exc:
        LOGGER.info("%s; serving %s", exc.message, DEFAULT_SNAPSHOT)
        return PortalSettings()
    config.configure_logging()
    return PortalSettings.from_config(config)


@lru_cache
def _store_for(snapshot_path: Path) -> DocumentStore:
    return DocumentStore(snapshot_path)


def get_store(settings: PortalSettings = Depends(get_settings)) -> DocumentStore:
    return _store_for(settings.snapshot_path)


_CONTROLLERS: "weakref.WeakKeyDictionary[DocumentStore, Dict[str, CoursePageController]]" = weakref.WeakKeyDictionary()
_CONTROLLERS_LOCK = threading.Lock()


def get_controller(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    settings: PortalSettings = Depends(get_settings),
    store: DocumentStore = Depends(get_store),
) -> CoursePageController:
    """One controller per signed-in user, so page loads stay cached between requests."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        user = store.get_user(x_user_id)
    except CollaboratorError as exc:
        raise HTTPException(status_code=503, detail=exc.message) from exc
    if user is None:
        raise HTTPException(status_code=401, detail=f"Unknown user {x_user_id}")

    with _CONTROLLERS_LOCK:
        per_store = _CONTROLLERS.setdefault(store, {})
        controller = per_store.get(x_user_id)
        if controller is None:
            controller = CoursePageController(store, store.identity_for(x_user_id), fallback=settings.fallback)
            per_store[x_user_id] = controller
    return controller


class HealthResponse(BaseModel):
    status: str
    version: str
    snapshot: str
    fallback: str


class CourseSummary(BaseModel):
    id: str
    name: str
    year: str = ""
    section: str = ""
    description: str = ""
    level: int | None = None
    subjects: List[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, course: CourseRecord) -> "CourseSummary":
        return cls(
            id=course.id,
            name=course.name,
            year=course.year,
            section=course.section,
            description=course.description,
            level=course.level,
            subjects=list(course.subjects),
        )


class CourseDetail(BaseModel):
    course: CourseSummary
    syllabus: str = ""
    created_by: str = ""
    created_at: datetime | None = None
    unrestricted: bool
    permitted_terms: List[str] = Field(default_factory=list)
    notices: List[str] = Field(default_factory=list)


class ContentItem(BaseModel):
    id: str
    name: str
    timestamp: datetime | None = None
    url: str = ""
    type: str | None = None
    source: str | None = None
    thumbnail: str | None = None
    duration: str | None = None


class TabbedContentResponse(BaseModel):
    visible_tabs: List[str] = Field(default_factory=list)
    active_tab: str | None = None
    counts: Dict[str, int] = Field(default_factory=dict)
    items: List[ContentItem] = Field(default_factory=list)
    buckets: Dict[str, List[ContentItem]] = Field(default_factory=dict)
    notices: List[str] = Field(default_factory=list)


class GradesResponse(BaseModel):
    view: Literal["self", "roster"]
    self_report: SelfGradeReport | None = None
    roster: List[StudentGradeSummary] = Field(default_factory=list)
    expanded: str | None = None
    notices: List[str] = Field(default_factory=list)


class ExpandResponse(BaseModel):
    expanded: str | None = None


settings_at_import = get_settings()
app = FastAPI(title=settings_at_import.title, version=get_version())
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings_at_import.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
def health(settings: PortalSettings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=get_version(),
        snapshot=str(settings.snapshot_path),
        fallback=settings.fallback.value,
    )


@app.get("/courses", response_model=List[CourseSummary])
def list_courses(controller: CoursePageController = Depends(get_controller)) -> List[CourseSummary]:
    return [CourseSummary.from_record(course) for course in controller.list_courses()]


@app.get("/courses/{course_id}", response_model=CourseDetail)
def get_course(
    course_id: str,
    refresh: bool = Query(False, description="Refetch instead of reusing the loaded page"),
    controller: CoursePageController = Depends(get_controller),
    store: DocumentStore = Depends(get_store),
) -> CourseDetail:
    view, course = _load_view(controller, store, course_id, refresh=refresh)
    return CourseDetail(
        course=CourseSummary.from_record(course),
        syllabus=course.syllabus,
        created_by=course.created_by,
        created_at=course.created_at,
        unrestricted=view.permitted.unrestricted,
        permitted_terms=_term_names(view.permitted),
        notices=list(view.notices),
    )


@app.get("/courses/{course_id}/attachments", response_model=TabbedContentResponse)
def get_attachments(
    course_id: str,
    tab: Tab | None = Query(None, description="Semester tab to activate"),
    refresh: bool = Query(False),
    controller: CoursePageController = Depends(get_controller),
    store: DocumentStore = Depends(get_store),
) -> TabbedContentResponse:
    return _section_response(controller, store, course_id, PageTab.ATTACHMENTS, tab, refresh)


@app.get("/courses/{course_id}/videos", response_model=TabbedContentResponse)
def get_videos(
    course_id: str,
    tab: Tab | None = Query(None, description="Semester tab to activate"),
    refresh: bool = Query(False),
    controller: CoursePageController = Depends(get_controller),
    store: DocumentStore = Depends(get_store),
) -> TabbedContentResponse:
    return _section_response(controller, store, course_id, PageTab.VIDEOS, tab, refresh)


@app.get("/courses/{course_id}/grades", response_model=GradesResponse)
def get_grades(
    course_id: str,
    refresh: bool = Query(False),
    controller: CoursePageController = Depends(get_controller),
    store: DocumentStore = Depends(get_store),
    settings: PortalSettings = Depends(get_settings),
) -> GradesResponse:
    viewer = controller.viewer
    if not (viewer.can(Capability.VIEW_ROSTER_GRADES) or viewer.can(Capability.VIEW_OWN_GRADES)):
        _audit(settings, "grades", "denied", viewer, course_id)
        raise HTTPException(status_code=403, detail="Grades are not available for this account")

    view, _ = _load_view(controller, store, course_id, refresh=refresh)
    grades = controller.grades(course_id)
    _audit(settings, "grades", "granted", viewer, course_id, {"roster": grades.is_roster})
    return GradesResponse(
        view="roster" if grades.is_roster else "self",
        self_report=grades.self_report,
        roster=list(grades.roster),
        expanded=grades.expansion.expanded if grades.expansion else None,
        notices=list(view.notices),
    )


@app.post("/courses/{course_id}/grades/expand/{student_id}", response_model=ExpandResponse)
def toggle_student(
    course_id: str,
    student_id: str,
    controller: CoursePageController = Depends(get_controller),
    store: DocumentStore = Depends(get_store),
    settings: PortalSettings = Depends(get_settings),
) -> ExpandResponse:
    _load_view(controller, store, course_id, refresh=False)
    try:
        expanded = controller.toggle_student(course_id, student_id)
    except AuthorizationDenied as exc:
        _audit(settings, "roster", "denied", controller.viewer, course_id)
        raise HTTPException(status_code=403, detail=exc.message) from exc
    return ExpandResponse(expanded=expanded)


@app.get("/programs", response_model=List[ProgramStats])
def list_programs(
    controller: CoursePageController = Depends(get_controller),
    settings: PortalSettings = Depends(get_settings),
) -> List[ProgramStats]:
    try:
        stats = controller.program_stats()
    except AuthorizationDenied as exc:
        _audit(settings, "programs", "denied", controller.viewer)
        raise HTTPException(status_code=403, detail=exc.message) from exc
    _audit(settings, "programs", "granted", controller.viewer, details={"programs": len(stats)})
    return stats


def _load_view(
    controller: CoursePageController,
    store: DocumentStore,
    course_id: str,
    *,
    refresh: bool,
) -> Tuple[CoursePageView, CourseRecord]:
    if refresh:
        store.reload()
    try:
        view = controller.load(course_id, refresh=refresh)
    except CourseNotFound as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    course = view.course
    if course is None:
        raise HTTPException(status_code=503, detail="; ".join(view.notices) or "Course data unavailable")
    return view, course


def _section_response(
    controller: CoursePageController,
    store: DocumentStore,
    course_id: str,
    section: PageTab,
    tab: Tab | None,
    refresh: bool,
) -> TabbedContentResponse:
    view, _ = _load_view(controller, store, course_id, refresh=refresh)
    controller.open_tab(course_id, section)
    content = controller.select_semester(course_id, section, tab) if tab else _section(view, section)
    return _tabbed_response(content, view.notices)


def _section(view: CoursePageView, section: PageTab) -> TabbedContent:
    return view.attachments if section is PageTab.ATTACHMENTS else view.videos


def _tabbed_response(content: TabbedContent, notices: Sequence[str]) -> TabbedContentResponse:
    return TabbedContentResponse(
        visible_tabs=[tab.value for tab in content.visible_tabs],
        active_tab=content.active_tab.value if content.active_tab else None,
        counts={tab.value: len(content.buckets.get(tab)) for tab in content.visible_tabs},
        items=[_content_item(item) for item in content.current],
        buckets={tab.value: [_content_item(item) for item in content.buckets.get(tab)] for tab in content.visible_tabs},
        notices=list(notices),
    )


def _content_item(item: TimedItem) -> ContentItem:
    return ContentItem(
        id=item.id,
        name=item.name,
        timestamp=item.timestamp,
        url=getattr(item, "url", ""),
        type=getattr(item, "type", None) or None,
        source=getattr(item, "source", None),
        thumbnail=getattr(item, "thumbnail", None),
        duration=getattr(item, "duration", None),
    )


def _term_names(permitted: PermittedTerms) -> List[str]:
    return sorted(term.value for term in permitted.terms)


def _audit(
    settings: PortalSettings,
    view: str,
    decision: Decision,
    viewer: Viewer,
    course_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    if settings.audit_log is None:
        LOGGER.info("Access %s: %s for %s (%s)", decision, view, viewer.user_id, viewer.role)
        return
    _access_logger(settings.audit_log).record(
        view,
        decision,
        user_id=viewer.user_id,
        role=viewer.role,
        course_id=course_id,
        details=details,
    )


@lru_cache
def _access_logger(path: Path) -> AccessLogger:
    return AccessLogger(path)


@app.exception_handler(HTTPException)
async def http_error_handler(_: Any, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
