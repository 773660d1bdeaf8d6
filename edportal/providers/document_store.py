"""Snapshot-backed stand-in for the portal's document database.

The snapshot is a JSON or YAML export with one top-level key per collection:
``authorizedUsers``, ``courses``, ``assignments``, ``quizResults``,
``playlists`` and ``programs``. Collections may be stored as ``{doc_id: doc}``
maps (document ids are injected into each document) or as plain lists.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from edportal.academics.enrollment import course_ref_matches, enrollment_plan_for
from edportal.academics.records import (
    Assignment,
    Attachment,
    CourseRecord,
    ProgramRegistration,
    QuizResult,
    UserRecord,
    UserRole,
    Video,
    normalize_many,
)
from edportal.core.errors import CollaboratorError

from .interfaces import VideoSource

LOGGER = logging.getLogger("edportal.document_store")

COLLECTION_ID_KEYS = {
    "authorizedUsers": "uid",
    "courses": "Id",
    "assignments": "AssignmentId",
    "programs": "id",
}


def _documents(collection: Any, id_key: str | None = None) -> List[Dict[str, Any]]:
    if isinstance(collection, Mapping):
        docs = []
        for doc_id, doc in collection.items():
            if not isinstance(doc, Mapping):
                continue
            payload = dict(doc)
            if id_key:
                payload.setdefault(id_key, str(doc_id))
            docs.append(payload)
        return docs
    if isinstance(collection, list):
        return [dict(doc) for doc in collection if isinstance(doc, Mapping)]
    return []


class DocumentStore:
    """Reads every portal collection from one snapshot file."""

    def __init__(self, snapshot_path: Path) -> None:
        self.snapshot_path = snapshot_path
        self._snapshot: Dict[str, Any] | None = None
        self._in_memory = False
        self._lock = threading.Lock()

    @classmethod
    def from_mapping(cls, snapshot: Mapping[str, Any], *, label: str = "<memory>") -> "DocumentStore":
        store = cls(Path(label))
        store._snapshot = dict(snapshot)
        store._in_memory = True
        return store

    def _load(self) -> Dict[str, Any]:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._read_snapshot()
            return self._snapshot

    def _read_snapshot(self) -> Dict[str, Any]:
        try:
            text = self.snapshot_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CollaboratorError(
                f"Snapshot unreadable at {self.snapshot_path}",
                error_code="snapshot_unreadable",
            ) from exc
        try:
            if self.snapshot_path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise CollaboratorError(
                f"Snapshot at {self.snapshot_path} is not valid {self.snapshot_path.suffix or 'YAML'}",
                error_code="snapshot_invalid",
            ) from exc
        if not isinstance(data, dict):
            raise CollaboratorError(f"Expected collections mapping in {self.snapshot_path}", error_code="snapshot_invalid")
        LOGGER.info("Loaded snapshot %s (%s collections)", self.snapshot_path, len(data))
        return data

    def reload(self) -> None:
        """Drop the cached snapshot so the next read goes back to disk."""
        if not self._in_memory:
            with self._lock:
                self._snapshot = None

    def _collection(self, name: str) -> List[Dict[str, Any]]:
        return _documents(self._load().get(name), COLLECTION_ID_KEYS.get(name))

    # ============== Users ==============

    def list_users(self) -> List[UserRecord]:
        return normalize_many(UserRecord, self._collection("authorizedUsers"))

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        for user in self.list_users():
            if user.uid == user_id:
                return user
        return None

    def identity_for(self, user_id: Optional[str]) -> "StoreIdentity":
        return StoreIdentity(self, user_id)

    # ============== Courses ==============

    def list_courses(self) -> List[CourseRecord]:
        return normalize_many(CourseRecord, self._collection("courses"))

    def get_course(self, course_id: str) -> Optional[CourseRecord]:
        for course in self.list_courses():
            if course.id == course_id:
                return course
        return None

    def get_course_attachments(self, course_id: str) -> List[Attachment]:
        course = self.get_course(course_id)
        return list(course.attachments) if course else []

    def get_course_videos(self, course: CourseRecord) -> VideoSource:
        playlists = self._load().get("playlists")
        playlists = playlists if isinstance(playlists, Mapping) else {}

        def _playlist(playlist_id: str) -> tuple:
            if not playlist_id:
                return ()
            if playlist_id not in playlists:
                LOGGER.warning("Playlist %s referenced by course %s is missing", playlist_id, course.id)
            return tuple(normalize_many(Video, _documents(playlists.get(playlist_id))))

        if course.uses_semester_playlists:
            return VideoSource(
                fall=_playlist(course.fall_playlist),
                spring=_playlist(course.spring_playlist),
                by_semester=True,
            )
        return VideoSource(videos=_playlist(course.playlist))

    # ============== Assignments ==============

    def get_assignments(self, course_id: str) -> List[Assignment]:
        return [
            assignment
            for assignment in normalize_many(Assignment, self._collection("assignments"))
            if assignment.course_id == course_id
        ]

    def get_results(self, course_id: str) -> Dict[str, List[QuizResult]]:
        assignment_ids = {assignment.id for assignment in self.get_assignments(course_id)}
        grouped: Dict[str, List[QuizResult]] = {}
        for result in normalize_many(QuizResult, self._collection("quizResults")):
            if result.assignment_id in assignment_ids:
                grouped.setdefault(result.assignment_id, []).append(result)
        return grouped

    # ============== Roster / programs ==============

    def get_enrolled_students(self, course_id: str) -> List[UserRecord]:
        return [
            user
            for user in self.list_users()
            if any(course_ref_matches(entry.course_ref, course_id) for entry in user.enrollments)
        ]

    def get_program_registrations(self) -> List[ProgramRegistration]:
        registrations = normalize_many(ProgramRegistration, self._collection("programs"))
        return sorted(
            registrations,
            key=lambda item: item.created_at.timestamp() if item.created_at else float("-inf"),
            reverse=True,
        )


class StoreIdentity:
    """Identity answers for one signed-in user, read from the snapshot."""

    def __init__(self, store: DocumentStore, user_id: Optional[str]) -> None:
        self.store = store
        self.user_id = user_id

    def get_current_user_id(self) -> Optional[str]:
        return self.user_id

    def get_user_role(self, user_id: Optional[str] = None) -> Optional[UserRole]:
        user_id = user_id or self.user_id
        if not user_id:
            return None
        user = self.store.get_user(user_id)
        return user.role if user else None

    def get_user_enrollment_plan(self, user_id: str, course_id: str) -> Optional[str]:
        user = self.store.get_user(user_id)
        return enrollment_plan_for(user, course_id) if user else None


__all__ = ["DocumentStore", "StoreIdentity"]
