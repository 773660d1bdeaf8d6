from edportal.academics.programs import summarize_programs
from edportal.academics.records import ProgramRegistration


def _registration(name: str, **fields) -> dict:
    doc = {"programName": name}
    doc.update(fields)
    return doc


def test_summarize_programs_groups_in_first_seen_order() -> None:
    registrations = [
        ProgramRegistration.model_validate(doc)
        for doc in (
            _registration(
                "Robotics Camp",
                programType="Camp",
                participantInfo={"firstName": "Kim", "attendeeCount": 3},
            ),
            _registration("Math Circle", participantInfo={"firstName": "Lee"}),
            _registration(
                "Robotics Camp",
                programType="Workshop",
                participantInfo={"firstName": "Sam", "attendeeCount": 2},
                programDetails={"status": "confirmed", "imageUrl": "https://img.test/r.png"},
            ),
        )
    ]

    stats = summarize_programs(registrations)

    assert [entry.program_name for entry in stats] == ["Robotics Camp", "Math Circle"]
    robotics, math_circle = stats
    assert robotics.total_registrations == 2
    assert robotics.total_attendees == 5
    assert robotics.program_type == "Camp"
    assert robotics.status == "registered"
    assert robotics.image_url is None
    assert [participant.first_name for participant in robotics.participants] == ["Kim", "Sam"]

    assert math_circle.program_type == "Unknown"
    assert math_circle.total_attendees == 0


def test_summarize_programs_empty() -> None:
    assert summarize_programs([]) == []
