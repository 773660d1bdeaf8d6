from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from apps.portal_backend.main import PortalSettings, app, get_controller, get_settings, get_store
from edportal.academics.enrollment import FallbackPolicy
from edportal.core.errors import CollaboratorError
from edportal.providers.document_store import DocumentStore

SAMPLE_SNAPSHOT = Path(__file__).resolve().parents[1] / "config" / "sample_snapshot.yaml"


@pytest.fixture()
def portal_settings(tmp_path: Path) -> Iterator[PortalSettings]:
    settings = PortalSettings(snapshot_path=SAMPLE_SNAPSHOT, audit_log=tmp_path / "access.jsonl")
    store = DocumentStore(SAMPLE_SNAPSHOT)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: store
    try:
        yield settings
    finally:
        app.dependency_overrides.pop(get_settings, None)
        app.dependency_overrides.pop(get_store, None)


@pytest.fixture()
def client(portal_settings: PortalSettings) -> TestClient:
    return TestClient(app)


def _as(user_id: str) -> dict:
    return {"X-User-Id": user_id}


def _audit_lines(settings: PortalSettings) -> list[dict]:
    assert settings.audit_log is not None
    if not settings.audit_log.exists():
        return []
    return [json.loads(line) for line in settings.audit_log.read_text(encoding="utf-8").splitlines() if line]


def test_health_reports_snapshot(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["snapshot"] == str(SAMPLE_SNAPSHOT)
    assert payload["fallback"] == "show_all"


def test_missing_or_unknown_user_is_unauthorized(client: TestClient) -> None:
    missing = client.get("/courses")
    assert missing.status_code == 401
    assert missing.json() == {"detail": "Missing X-User-Id header"}

    unknown = client.get("/courses", headers=_as("intruder"))
    assert unknown.status_code == 401


def test_list_courses_by_role(client: TestClient) -> None:
    admin = client.get("/courses", headers=_as("admin1")).json()
    assert [course["id"] for course in admin] == ["db101", "algo200"]

    student = client.get("/courses", headers=_as("stu-fall")).json()
    assert [course["id"] for course in student] == ["db101"]


def test_course_detail_and_not_found(client: TestClient) -> None:
    response = client.get("/courses/db101", headers=_as("stu-fall"))
    assert response.status_code == 200
    payload = response.json()
    assert payload["course"]["name"] == "Database Systems"
    assert payload["permitted_terms"] == ["fall"]
    assert payload["unrestricted"] is False

    missing = client.get("/courses/nope", headers=_as("stu-fall"))
    assert missing.status_code == 404
    assert "nope" in missing.json()["detail"]


def test_attachments_for_fall_student(client: TestClient) -> None:
    payload = client.get("/courses/db101/attachments", headers=_as("stu-fall")).json()
    assert payload["visible_tabs"] == ["fall", "all"]
    assert payload["active_tab"] == "fall"
    assert [item["id"] for item in payload["items"]] == ["a2", "a1"]
    assert "spring" not in payload["buckets"]

    hidden = client.get("/courses/db101/attachments", params={"tab": "spring"}, headers=_as("stu-fall")).json()
    assert hidden["active_tab"] == "fall"


def test_videos_tab_selection_for_admin(client: TestClient) -> None:
    payload = client.get("/courses/db101/videos", params={"tab": "spring"}, headers=_as("admin1")).json()
    assert payload["active_tab"] == "spring"
    assert [item["id"] for item in payload["items"]] == ["v3"]
    assert payload["counts"] == {"fall": 3, "spring": 1, "all": 4}
    assert payload["items"][0]["url"] == "https://www.youtube.com/watch?v=v3"


def test_refresh_query_reloads(client: TestClient) -> None:
    first = client.get("/courses/db101", headers=_as("admin1"))
    refreshed = client.get("/courses/db101", params={"refresh": "true"}, headers=_as("admin1"))
    assert first.status_code == refreshed.status_code == 200


def test_student_grades(client: TestClient, portal_settings: PortalSettings) -> None:
    response = client.get("/courses/db101/grades", headers=_as("stu-fall"))
    assert response.status_code == 200
    payload = response.json()
    assert payload["view"] == "self"
    rows = payload["self_report"]["rows"]
    assert [row["assignment_id"] for row in rows] == ["asg1", "asg2"]
    assert rows[0]["percentage"] == pytest.approx(80.0)
    assert payload["self_report"]["totals"]["score"] == 23
    assert payload["roster"] == []

    events = _audit_lines(portal_settings)
    assert events[-1]["view"] == "grades"
    assert events[-1]["decision"] == "granted"


def test_admin_roster_and_expand(client: TestClient) -> None:
    payload = client.get("/courses/db101/grades", headers=_as("admin1")).json()
    assert payload["view"] == "roster"
    assert [summary["student_id"] for summary in payload["roster"]] == ["stu-fall", "stu-full"]
    assert payload["expanded"] is None

    expanded = client.post("/courses/db101/grades/expand/stu-full", headers=_as("admin1"))
    assert expanded.status_code == 200
    assert expanded.json() == {"expanded": "stu-full"}
    assert client.get("/courses/db101/grades", headers=_as("admin1")).json()["expanded"] == "stu-full"

    collapsed = client.post("/courses/db101/grades/expand/stu-full", headers=_as("admin1"))
    assert collapsed.json() == {"expanded": None}


def test_student_cannot_expand_roster(client: TestClient, portal_settings: PortalSettings) -> None:
    response = client.post("/courses/db101/grades/expand/stu-full", headers=_as("stu-fall"))
    assert response.status_code == 403
    assert _audit_lines(portal_settings)[-1]["decision"] == "denied"


def test_unresolved_role_gets_no_grades(portal_settings: PortalSettings) -> None:
    store = DocumentStore.from_mapping({"authorizedUsers": {"guest": {"email": "guest@school.edu"}}})
    app.dependency_overrides[get_store] = lambda: store
    response = TestClient(app).get("/courses/db101/grades", headers=_as("guest"))
    assert response.status_code == 403


def test_programs_admin_only(client: TestClient, portal_settings: PortalSettings) -> None:
    denied = client.get("/programs", headers=_as("stu-full"))
    assert denied.status_code == 403

    granted = client.get("/programs", headers=_as("admin1"))
    assert granted.status_code == 200
    programs = granted.json()
    assert [entry["program_name"] for entry in programs] == ["Robotics Camp", "Math Circle"]
    assert programs[0]["total_attendees"] == 5

    decisions = [(event["view"], event["decision"]) for event in _audit_lines(portal_settings)]
    assert decisions == [("programs", "denied"), ("programs", "granted")]


def test_show_nothing_policy_hides_content_for_unknown_plans(portal_settings: PortalSettings) -> None:
    strict = portal_settings.model_copy(update={"fallback": FallbackPolicy.SHOW_NOTHING})
    store = DocumentStore(SAMPLE_SNAPSHOT)
    app.dependency_overrides[get_settings] = lambda: strict
    app.dependency_overrides[get_store] = lambda: store
    payload = TestClient(app).get("/courses/db101/attachments", headers=_as("stu-odd")).json()
    assert payload["visible_tabs"] == []
    assert payload["items"] == []


def test_concurrent_requests_share_one_controller(portal_settings: PortalSettings) -> None:
    store = DocumentStore(SAMPLE_SNAPSHOT)
    controllers = []

    def resolve() -> None:
        controllers.append(get_controller(x_user_id="admin1", settings=portal_settings, store=store))

    threads = [threading.Thread(target=resolve) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(controllers) == 8
    assert all(controller is controllers[0] for controller in controllers)


class CourseOutageStore(DocumentStore):
    def get_course(self, course_id: str):
        raise CollaboratorError("courses collection unavailable")


def test_course_outage_is_service_unavailable(portal_settings: PortalSettings) -> None:
    store = CourseOutageStore(SAMPLE_SNAPSHOT)
    app.dependency_overrides[get_store] = lambda: store
    response = TestClient(app).get("/courses/db101", headers=_as("admin1"))
    assert response.status_code == 503
    assert response.json() == {"detail": "Could not load course."}
