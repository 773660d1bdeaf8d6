"""Registration roll-ups for the programs page."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .records import ProgramParticipant, ProgramRegistration


class ProgramStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    program_name: str
    program_type: str
    total_registrations: int
    total_attendees: int
    participants: Tuple[ProgramParticipant, ...] = ()
    image_url: Optional[str] = None
    status: str = "registered"


def summarize_programs(registrations: Iterable[ProgramRegistration]) -> List[ProgramStats]:
    """Group registrations by program name, in first-seen order.

    Type, image and status are taken from the first registration of each
    program.
    """
    groups: Dict[str, List[ProgramRegistration]] = {}
    for registration in registrations:
        groups.setdefault(registration.program_name, []).append(registration)

    stats: List[ProgramStats] = []
    for name, members in groups.items():
        first = members[0]
        stats.append(
            ProgramStats(
                program_name=name,
                program_type=first.program_type or "Unknown",
                total_registrations=len(members),
                total_attendees=sum(member.participant.attendee_count for member in members),
                participants=tuple(member.participant for member in members),
                image_url=first.image_url,
                status=first.status or "registered",
            )
        )
    return stats


__all__ = ["ProgramStats", "summarize_programs"]
