from datetime import date, datetime, timezone

from edportal.academics.semester import Term, classify
from edportal.academics.records import (
    Assignment,
    Attachment,
    CourseRecord,
    ProgramRegistration,
    QuizResult,
    UserRecord,
    Video,
    coerce_timestamp,
    normalize_many,
    parse_class_number,
)


def test_coerce_timestamp_variants() -> None:
    expected = datetime(2024, 9, 3, 10, 0, tzinfo=timezone.utc)
    assert coerce_timestamp("2024-09-03T10:00:00Z") == expected
    assert coerce_timestamp({"seconds": int(expected.timestamp()), "nanoseconds": 0}) == expected
    assert coerce_timestamp({"_seconds": int(expected.timestamp())}) == expected
    assert coerce_timestamp(expected.timestamp()) == expected
    assert coerce_timestamp(int(expected.timestamp()) * 1000) == expected
    assert coerce_timestamp(date(2024, 9, 3)) == datetime(2024, 9, 3)


def test_millisecond_upload_time_lands_in_its_semester() -> None:
    uploaded = datetime(2024, 10, 2, 12, 0, tzinfo=timezone.utc)
    attachment = Attachment.model_validate({"id": "a1", "name": "Notes", "uploadedAt": int(uploaded.timestamp() * 1000)})
    assert attachment.timestamp == uploaded
    assert classify(attachment.timestamp) is Term.FALL


def test_coerce_timestamp_unparsable_is_none() -> None:
    assert coerce_timestamp(None) is None
    assert coerce_timestamp("") is None
    assert coerce_timestamp("next tuesday") is None
    assert coerce_timestamp(float("nan")) is None
    assert coerce_timestamp(True) is None
    assert coerce_timestamp({"nanoseconds": 5}) is None


def test_parse_class_number() -> None:
    assert parse_class_number("Class 12: Joins") == 12
    assert parse_class_number("CLASS   3") == 3
    assert parse_class_number("Classroom tour") is None
    assert parse_class_number("") is None


def test_course_record_normalizes_casing() -> None:
    upper = CourseRecord.model_validate(
        {"Id": "c1", "Name": "Databases", "Year": "2024", "FallPlaylist": "pf", "Attachments": [{"id": "a", "name": "x"}]}
    )
    lower = CourseRecord.model_validate(
        {"id": "c1", "name": "Databases", "year": "2024", "fallPlaylist": "pf", "attachments": [{"id": "a", "name": "x"}]}
    )
    assert upper == lower
    assert upper.uses_semester_playlists
    assert isinstance(upper.attachments[0], Attachment)


def test_attachment_reads_uploaded_at() -> None:
    attachment = Attachment.model_validate(
        {"Id": "a1", "Name": "Notes", "uploadedAt": "2025-02-01T00:00:00Z", "source": "drive", "url": "u"}
    )
    assert attachment.timestamp == datetime(2025, 2, 1, tzinfo=timezone.utc)
    assert attachment.source == "drive"
    assert Attachment.model_validate({"id": "a2", "source": "email"}).source is None


def test_video_title_and_class_key() -> None:
    video = Video.model_validate({"id": "abc", "title": "Class 7: Views", "publishedAt": "2024-10-01T00:00:00Z"})
    assert video.name == "Class 7: Views"
    assert video.sort_key == 7
    assert video.url == "https://www.youtube.com/watch?v=abc"
    assert video.timestamp is not None and video.timestamp.month == 10


def test_assignment_and_result_casing() -> None:
    upper = Assignment.model_validate({"AssignmentId": "q1", "Title": "Quiz", "CourseId": "c1", "Points": 10})
    lower = Assignment.model_validate({"assignmentId": "q1", "title": "Quiz", "courseId": "c1", "points": 10})
    assert upper == lower
    assert upper.max_points == 10

    result = QuizResult.model_validate({"assignmentId": "q1", "studentId": "s1"})
    assert result.score == 0
    assert QuizResult.model_validate({"AssignmentId": "q1", "StudentId": "s1", "score": "ten"}).score == 0


def test_user_record_enrollment_shapes() -> None:
    with_plans = UserRecord.model_validate(
        {
            "uid": "s1",
            "Role": "student",
            "courses": [
                {"courseRef": "courses/c1", "guidanceDetails": {"plan": "Fall Semester"}},
                "courses/c2",
                {"Id": "c3"},
                42,
            ],
        }
    )
    assert [entry.course_id for entry in with_plans.enrollments] == ["c1", "c2", "c3"]
    assert with_plans.enrollments[0].plan == "Fall Semester"
    assert with_plans.role == "student"

    by_refs = UserRecord.model_validate({"id": "s2", "courseRefs": ["courses/c9"]})
    assert [entry.course_id for entry in by_refs.enrollments] == ["c9"]
    assert by_refs.role is None

    by_enrolled = UserRecord.model_validate({"studentId": "s3", "enrolledCourses": ["c4"]})
    assert by_enrolled.uid == "s3"
    assert [entry.course_id for entry in by_enrolled.enrollments] == ["c4"]


def test_program_registration_defaults() -> None:
    registration = ProgramRegistration.model_validate(
        {"programName": "Camp", "participantInfo": {"firstName": "Sam", "attendeeCount": 2}}
    )
    assert registration.program_name == "Camp"
    assert registration.participant.attendee_count == 2
    assert registration.status == ""
    assert registration.image_url is None


def test_normalize_many_skips_malformed_documents() -> None:
    docs = [{"id": "ok", "title": "Class 1"}, "not-a-doc", {"id": "bad", "thumbnail": {"url": "x"}}]
    videos = normalize_many(Video, docs)
    assert [video.id for video in videos] == ["ok"]
