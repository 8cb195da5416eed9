from __future__ import annotations
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional


@dataclass(frozen=True)
class StreakUpdate:
    current_streak: int
    longest_streak: int
    last_session_date: date


def advance_streak(
    current: int,
    longest: int,
    last_session_date: Optional[date],
    completed_on: date,
) -> StreakUpdate:
    """
    Streak after a ritual completed on ``completed_on``.

    The run continues only when the previous ritual was exactly the day
    before; any other gap (including none, or a first ritual) restarts at 1.
    """
    if last_session_date is not None and completed_on - last_session_date == timedelta(days=1):
        current = current + 1
    else:
        current = 1
    return StreakUpdate(
        current_streak=current,
        longest_streak=max(longest, current),
        last_session_date=completed_on,
    )
