"""Canonical, immutable shapes for the documents the portal reads.

Raw documents arrive with whatever field casing the writer used (``name`` or
``Name``, ``AssignmentId`` or ``assignmentId``) and with timestamps stored as
Firestore ``{seconds, nanoseconds}`` maps, ISO strings or epoch numbers. Each
model folds those variants into one shape in a ``mode="before"`` validator so
nothing past the provider boundary has to care.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

LOGGER = logging.getLogger("edportal.records")

CLASS_NUMBER_PATTERN = re.compile(r"class\s+(\d+)", re.IGNORECASE)

# Epoch numbers above this are milliseconds (JavaScript Date values).
EPOCH_MILLIS_THRESHOLD = 1e11

UserRole = Literal["student", "admin"]


def coerce_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a stored timestamp; ``None`` when unparsable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
        if not isinstance(nanos, (int, float)):
            nanos = 0
        return coerce_timestamp(seconds + nanos / 1_000_000_000 if isinstance(seconds, (int, float)) else seconds)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        if abs(value) > EPOCH_MILLIS_THRESHOLD:
            value = value / 1000
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def parse_class_number(title: str) -> int | None:
    """Return the number in a "Class 12" style title, if any."""
    match = CLASS_NUMBER_PATTERN.search(title or "")
    return int(match.group(1)) if match else None


def _first(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return default


def _as_mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


class TimedItem(BaseModel):
    """Any content unit that can be bucketed by when it was published."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    timestamp: Optional[datetime] = None
    sort_key: Optional[int] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime | None:
        return coerce_timestamp(value)


class Attachment(TimedItem):
    url: str = ""
    type: str = ""
    source: Optional[Literal["drive", "upload"]] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "timestamp" in data:
            return data
        raw = dict(data)
        source = _first(raw, "source", "Source")
        return {
            "id": str(_first(raw, "id", "Id", default="")),
            "name": str(_first(raw, "name", "Name", default="")),
            "timestamp": _first(raw, "uploadedAt", "UploadedAt"),
            "url": str(_first(raw, "url", "Url", default="")),
            "type": str(_first(raw, "type", "Type", default="")),
            "source": source if source in ("drive", "upload") else None,
        }


class Video(TimedItem):
    url: str = ""
    thumbnail: Optional[str] = None
    duration: Optional[str] = None
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "timestamp" in data:
            return data
        raw = dict(data)
        title = str(_first(raw, "title", "Title", "name", "Name", default=""))
        video_id = str(_first(raw, "id", "videoId", "Id", default=""))
        url = _first(raw, "url", "Url")
        if url is None and video_id:
            url = f"https://www.youtube.com/watch?v={video_id}"
        return {
            "id": video_id,
            "name": title,
            "timestamp": _first(raw, "uploadDate", "publishedAt", "UploadDate"),
            "sort_key": parse_class_number(title),
            "url": url or "",
            "thumbnail": _first(raw, "thumbnail", "thumbnailUrl"),
            "duration": _first(raw, "duration", "Duration"),
            "description": str(_first(raw, "description", "Description", default="")),
        }


class CourseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    description: str = ""
    created_by: str = ""
    created_at: Optional[datetime] = None
    section: str = ""
    year: str = ""
    syllabus: str = ""
    level: Optional[int] = None
    subjects: Tuple[str, ...] = ()
    attachments: Tuple[Attachment, ...] = ()
    playlist: str = ""
    fall_playlist: str = ""
    spring_playlist: str = ""

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "created_by" in data:
            return data
        raw = dict(data)
        level = _first(raw, "level", "Level")
        return {
            "id": str(_first(raw, "id", "Id", default="")),
            "name": str(_first(raw, "name", "Name", default="")),
            "description": str(_first(raw, "description", "Description", default="")),
            "created_by": str(_first(raw, "createdBy", "CreatedBy", default="")),
            "created_at": coerce_timestamp(_first(raw, "createdAt", "CreatedAt", "created_at")),
            "section": str(_first(raw, "section", "Section", default="")),
            "year": str(_first(raw, "year", "Year", default="")),
            "syllabus": str(_first(raw, "syllabus", "Syllabus", default="")),
            "level": level if isinstance(level, int) and not isinstance(level, bool) else None,
            "subjects": tuple(str(item) for item in _as_list(_first(raw, "subjects", "Subjects"))),
            "attachments": tuple(
                item
                for item in _as_list(_first(raw, "attachments", "Attachments"))
                if isinstance(item, (Mapping, Attachment))
            ),
            "playlist": str(_first(raw, "playlist", "Playlist", default="")),
            "fall_playlist": str(_first(raw, "fallPlaylist", "FallPlaylist", "fall_playlist", default="")),
            "spring_playlist": str(_first(raw, "springPlaylist", "SpringPlaylist", "spring_playlist", default="")),
        }

    @property
    def uses_semester_playlists(self) -> bool:
        return bool(self.fall_playlist or self.spring_playlist)


class Assignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    course_id: str = ""
    max_points: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "max_points" in data:
            return data
        raw = dict(data)
        points = _first(raw, "Points", "points", "totalPoints", "TotalPoints", default=0)
        return {
            "id": str(_first(raw, "AssignmentId", "assignmentId", "id", "Id", default="")),
            "title": str(_first(raw, "Title", "title", default="")),
            "course_id": str(_first(raw, "CourseId", "courseId", "course_id", default="")),
            "max_points": points if isinstance(points, (int, float)) and not isinstance(points, bool) else 0,
        }


class QuizResult(BaseModel):
    """One submission. A result that exists but carries no score counts as 0."""

    model_config = ConfigDict(frozen=True)

    assignment_id: str
    student_id: str
    score: float = 0.0
    submitted_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "student_id" in data:
            return data
        raw = dict(data)
        score = _first(raw, "score", "Score", default=0)
        if not isinstance(score, (int, float)) or isinstance(score, bool) or not math.isfinite(score):
            score = 0
        return {
            "assignment_id": str(_first(raw, "AssignmentId", "assignmentId", "assignment_id", default="")),
            "student_id": str(_first(raw, "StudentId", "studentId", default="")),
            "score": score,
            "submitted_at": coerce_timestamp(_first(raw, "submittedAt", "SubmittedAt", "submitted_at")),
        }


class EnrollmentEntry(BaseModel):
    """A user's link to a course, optionally with the subscribed plan."""

    model_config = ConfigDict(frozen=True)

    course_ref: str
    plan: Optional[str] = None

    @property
    def course_id(self) -> str:
        return self.course_ref.rsplit("/", 1)[-1] if "/" in self.course_ref else self.course_ref


class UserRecord(BaseModel):
    """An authorized user; students double as roster entries."""

    model_config = ConfigDict(frozen=True)

    uid: str
    role: Optional[UserRole] = None
    first_name: str = ""
    last_name: str = ""
    display_name: str = ""
    email: str = ""
    profile_first_name: str = ""
    profile_last_name: str = ""
    profile_name: str = ""
    profile_email: str = ""
    enrollments: Tuple[EnrollmentEntry, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "profile_name" in data:
            return data
        raw = dict(data)
        info = _as_mapping(raw.get("studentInfo"))
        role = _first(raw, "Role", "role")
        return {
            "uid": str(_first(raw, "uid", "id", "studentId", default="")),
            "role": role if role in ("student", "admin") else None,
            "first_name": str(_first(raw, "FirstName", "firstName", "first_name", default="")),
            "last_name": str(_first(raw, "LastName", "lastName", "last_name", default="")),
            "display_name": str(_first(raw, "displayName", "DisplayName", "display_name", default="")),
            "email": str(_first(raw, "email", "Email", default="")),
            "profile_first_name": str(info.get("firstName") or raw.get("profile_first_name") or ""),
            "profile_last_name": str(info.get("lastName") or raw.get("profile_last_name") or ""),
            "profile_name": str(info.get("name") or ""),
            "profile_email": str(info.get("email") or raw.get("profile_email") or ""),
            "enrollments": raw.get("enrollments") or _parse_enrollments(raw),
        }


def _parse_enrollments(raw: Mapping[str, Any]) -> Tuple[EnrollmentEntry, ...]:
    entries: list[EnrollmentEntry] = []
    if raw.get("courses"):
        for item in _as_list(raw.get("courses")):
            if isinstance(item, str):
                entries.append(EnrollmentEntry(course_ref=item))
                continue
            if not isinstance(item, Mapping):
                continue
            ref = _first(item, "courseRef", "id", "Id")
            if not isinstance(ref, str):
                continue
            plan = _as_mapping(item.get("guidanceDetails")).get("plan")
            entries.append(EnrollmentEntry(course_ref=ref, plan=plan if isinstance(plan, str) else None))
        return tuple(entries)

    for key in ("courseRefs", "enrolledCourses"):
        if raw.get(key):
            return tuple(EnrollmentEntry(course_ref=ref) for ref in _as_list(raw[key]) if isinstance(ref, str))
    return ()


class ProgramParticipant(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    attendee_count: int = 0


class ProgramRegistration(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    program_name: str
    program_type: str = ""
    created_at: Optional[datetime] = None
    participant: ProgramParticipant = Field(default_factory=ProgramParticipant)
    image_url: Optional[str] = None
    status: str = ""

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "program_name" in data:
            return data
        raw = dict(data)
        info = _as_mapping(raw.get("participantInfo"))
        details = _as_mapping(raw.get("programDetails"))
        attendees = info.get("attendeeCount")
        return {
            "id": str(_first(raw, "id", "Id", default="")),
            "program_name": str(_first(raw, "programName", "ProgramName", default="")),
            "program_type": str(_first(raw, "programType", "ProgramType", default="")),
            "created_at": coerce_timestamp(raw.get("createdAt")),
            "participant": {
                "first_name": str(info.get("firstName") or ""),
                "last_name": str(info.get("lastName") or ""),
                "email": str(info.get("email") or ""),
                "phone": str(info.get("phone") or ""),
                "attendee_count": attendees if isinstance(attendees, int) and not isinstance(attendees, bool) else 0,
            },
            "image_url": details.get("imageUrl") or None,
            "status": str(details.get("status") or ""),
        }


def normalize_many(model: type[BaseModel], documents: Iterable[Any]) -> list:
    """Validate every mapping in ``documents`` against ``model``.

    Documents that are not mappings or do not fit the model are skipped with a
    warning so one bad record cannot hide the rest of a collection.
    """
    records = []
    for doc in documents:
        if not isinstance(doc, Mapping):
            continue
        try:
            records.append(model.model_validate(doc))
        except ValidationError as exc:
            LOGGER.warning("Skipping malformed %s document: %s", model.__name__, exc.errors()[:1])
    return records


__all__ = [
    "Assignment",
    "Attachment",
    "CourseRecord",
    "EnrollmentEntry",
    "ProgramParticipant",
    "ProgramRegistration",
    "QuizResult",
    "TimedItem",
    "UserRecord",
    "UserRole",
    "Video",
    "coerce_timestamp",
    "normalize_many",
    "parse_class_number",
]
