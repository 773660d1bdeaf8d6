"""Semester bucketing, ordering and de-duplication of course content."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .enrollment import (
    FallbackPolicy,
    PermittedTerms,
    Tab,
    reconcile_active_tab,
    visible_tabs,
)
from .records import CourseRecord, TimedItem, parse_class_number
from .semester import Term, classify

T = TypeVar("T")
ItemT = TypeVar("ItemT", bound=TimedItem)

SortRule = Callable[[Iterable[ItemT]], List[ItemT]]


def _epoch(item: TimedItem) -> float:
    return item.timestamp.timestamp() if item.timestamp is not None else 0.0


def chronological_descending(items: Iterable[ItemT]) -> List[ItemT]:
    """Newest first; items without a timestamp go last in their original order."""
    return sorted(items, key=lambda item: (item.timestamp is None, -_epoch(item)))


def _class_priority_key(item: TimedItem) -> Tuple[int, int, float]:
    if "class" in item.name.lower():
        number = item.sort_key if item.sort_key is not None else parse_class_number(item.name)
        return (0, -(number or 0), 0.0)
    return (1, 0, -_epoch(item))


def class_priority(items: Iterable[ItemT]) -> List[ItemT]:
    """Recorded classes first, highest class number first, then everything else newest first."""
    return sorted(items, key=_class_priority_key)


@dataclass(frozen=True)
class TermBuckets:
    fall: Tuple[TimedItem, ...] = ()
    spring: Tuple[TimedItem, ...] = ()
    all: Tuple[TimedItem, ...] = ()

    def get(self, tab: Tab) -> Tuple[TimedItem, ...]:
        return getattr(self, tab.value)

    def counts(self) -> Dict[str, int]:
        return {tab.value: len(self.get(tab)) for tab in Tab}


def _assemble(
    everything: Sequence[ItemT],
    fall: Sequence[ItemT],
    spring: Sequence[ItemT],
    permitted: PermittedTerms,
    sort_rule: SortRule,
) -> TermBuckets:
    if permitted.unrestricted:
        return TermBuckets(
            fall=tuple(sort_rule(fall)),
            spring=tuple(sort_rule(spring)),
            all=tuple(sort_rule(everything)),
        )

    fall_bucket = list(fall) if permitted.allows(Term.FALL) else []
    spring_bucket = list(spring) if permitted.allows(Term.SPRING) else []
    return TermBuckets(
        fall=tuple(sort_rule(fall_bucket)),
        spring=tuple(sort_rule(spring_bucket)),
        all=tuple(sort_rule(fall_bucket + spring_bucket)),
    )


def partition(
    items: Iterable[ItemT],
    permitted: PermittedTerms,
    sort_rule: SortRule,
    *,
    fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL,
) -> TermBuckets:
    """Split ``items`` into fall/spring/all buckets by the month they were published.

    Summer items and items without a timestamp never land in a term bucket.
    Unrestricted viewers get every item under ``all``; restricted viewers get
    the union of their permitted buckets.
    """
    effective = permitted.effective(fallback)
    if effective.is_empty:
        return TermBuckets()

    everything = list(items)
    fall: List[ItemT] = []
    spring: List[ItemT] = []
    for item in everything:
        if item.timestamp is None:
            continue
        term = classify(item.timestamp)
        if term is Term.FALL:
            fall.append(item)
        elif term is Term.SPRING:
            spring.append(item)
    return _assemble(everything, fall, spring, effective, sort_rule)


def partition_playlists(
    fall_items: Iterable[ItemT],
    spring_items: Iterable[ItemT],
    permitted: PermittedTerms,
    sort_rule: SortRule,
    *,
    fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL,
) -> TermBuckets:
    """Bucket content that is already split by semester (one playlist per term)."""
    effective = permitted.effective(fallback)
    if effective.is_empty:
        return TermBuckets()
    fall = list(fall_items)
    spring = list(spring_items)
    return _assemble(fall + spring, fall, spring, effective, sort_rule)


@dataclass(frozen=True)
class TabbedContent:
    """Buckets plus the tab state a page shows them with."""

    buckets: TermBuckets = field(default_factory=TermBuckets)
    visible_tabs: Tuple[Tab, ...] = ()
    active_tab: Optional[Tab] = None

    @property
    def current(self) -> Tuple[TimedItem, ...]:
        return self.buckets.get(self.active_tab) if self.active_tab is not None else ()


def build_tabbed_content(
    buckets: TermBuckets,
    permitted: PermittedTerms,
    *,
    fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL,
    active: Optional[Tab] = None,
) -> TabbedContent:
    tabs = visible_tabs(permitted, fallback=fallback)
    return TabbedContent(buckets=buckets, visible_tabs=tabs, active_tab=reconcile_active_tab(active, tabs))


def dedupe_by(items: Iterable[T], key: Callable[[T], Hashable]) -> List[T]:
    """Keep the first item for every distinct ``key``."""
    seen: set = set()
    unique: List[T] = []
    for item in items:
        marker = key(item)
        if marker in seen:
            continue
        seen.add(marker)
        unique.append(item)
    return unique


def dedupe_courses(courses: Iterable[CourseRecord]) -> List[CourseRecord]:
    """Collapse course sections sharing a name and year into one listing."""
    return dedupe_by(courses, lambda course: (course.name, course.year))


__all__ = [
    "SortRule",
    "TabbedContent",
    "TermBuckets",
    "build_tabbed_content",
    "chronological_descending",
    "class_priority",
    "dedupe_by",
    "dedupe_courses",
    "partition",
    "partition_playlists",
]
