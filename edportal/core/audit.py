"""Append-only JSONL log of who opened which gated view."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

LOGGER = logging.getLogger("edportal.audit")

Decision = Literal["granted", "denied"]


class AccessEvent(BaseModel):
    """One access decision taken at the presentation boundary."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    view: str = Field(..., description="View that was requested, e.g. 'grades' or 'programs'.")
    decision: Decision
    user_id: Optional[str] = None
    role: Optional[str] = None
    course_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLogger:
    """Records access decisions; denials are also logged as warnings.

    Several request threads may share one logger, so appends are serialized.
    """

    def __init__(self, output_path: Path):
        self.output_path = output_path
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def record(
        self,
        view: str,
        decision: Decision,
        *,
        user_id: Optional[str],
        role: Optional[str],
        course_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AccessEvent:
        event = AccessEvent(
            view=view,
            decision=decision,
            user_id=user_id,
            role=role,
            course_id=course_id,
            details=details or {},
        )
        level = logging.WARNING if decision == "denied" else logging.INFO
        LOGGER.log(level, "Access %s: %s for %s (%s)", decision, view, user_id or "anonymous", role or "no role")
        with self._lock, self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(event.model_dump_json() + "\n")
        return event


__all__ = ["AccessEvent", "AccessLogger", "Decision"]
