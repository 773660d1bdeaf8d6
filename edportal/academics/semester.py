"""Calendar-month rule that maps a point in time to an academic term."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum

FALL_MONTHS = range(9, 13)
SPRING_MONTHS = range(1, 6)


class Term(str, Enum):
    FALL = "fall"
    SPRING = "spring"
    OTHER = "other"


def classify(timestamp: datetime | int | float) -> Term:
    """Return the term a timestamp falls in.

    September through December is fall, January through May is spring and the
    summer months are ``other``. Datetimes are classified by their own calendar
    month; epoch numbers are read as seconds in UTC.
    """
    if isinstance(timestamp, datetime):
        month = timestamp.month
    elif isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool):
        if not math.isfinite(timestamp):
            raise ValueError(f"Cannot classify non-finite timestamp {timestamp!r}")
        month = datetime.fromtimestamp(timestamp, tz=timezone.utc).month
    else:
        raise TypeError(f"Unsupported timestamp type: {type(timestamp).__name__}")

    if month in FALL_MONTHS:
        return Term.FALL
    if month in SPRING_MONTHS:
        return Term.SPRING
    return Term.OTHER


__all__ = ["Term", "classify"]
