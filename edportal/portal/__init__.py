"""Viewer capabilities and the stateful course-page controller."""

from .controller import CoursePageController, CoursePageView, GradesView, PageTab
from .viewer import ANONYMOUS, Capability, Viewer

__all__ = [
    "ANONYMOUS",
    "Capability",
    "CoursePageController",
    "CoursePageView",
    "GradesView",
    "PageTab",
    "Viewer",
]
