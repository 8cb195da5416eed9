"""
Dashboard statistics derived from a user's ritual sessions.

Everything here is pure: callers load the records, these functions only
compute. Records may be ``SessionRecord`` models, ORM rows or plain dicts.
All dates are compared in the host's local time.
"""
from __future__ import annotations
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from nightnotes.schemas import BestSessionSummary, WeekDay

DAY_LABELS = ("M", "T", "W", "T", "F", "S", "S")


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def to_local(value: Any) -> Optional[datetime]:
    """Naive local datetime for a datetime / ISO string, or None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def week_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Monday 00:00 through Sunday 23:59:59.999999 of the week containing ``now``."""
    now = to_local(now) or datetime.now()
    monday = now.date() - timedelta(days=now.weekday())
    start = datetime.combine(monday, time.min)
    end = datetime.combine(monday + timedelta(days=6), time.max)
    return start, end


def trailing_window(now: Optional[datetime] = None, days: int = 7) -> Tuple[datetime, datetime]:
    """Rolling window [now - days, now]; unrelated to the calendar week."""
    now = to_local(now) or datetime.now()
    return now - timedelta(days=days), now


def calculate_avg_drop(sessions: Iterable[Any]) -> float:
    """Mean load drop rounded half-up to one decimal; 0 when nothing is complete."""
    deltas = [_field(s, "load_delta") for s in sessions]
    deltas = [d for d in deltas if d is not None]
    if not deltas:
        return 0
    mean = sum(deltas) / len(deltas)
    return math.floor(mean * 10 + 0.5) / 10


def sessions_in_week(sessions: Iterable[Any], now: Optional[datetime] = None) -> List[Any]:
    start, end = week_bounds(now)
    picked = []
    for s in sessions:
        completed = to_local(_field(s, "completed_at"))
        if completed is not None and start <= completed <= end:
            picked.append(s)
    return picked


def best_session(sessions: Sequence[Any]) -> Optional[Any]:
    """Largest load drop; on ties the earliest record in input order wins."""
    if not sessions:
        return None
    best = sessions[0]
    for s in sessions[1:]:
        if (_field(s, "load_delta") or 0) > (_field(best, "load_delta") or 0):
            best = s
    return best


def get_week_data(sessions: Iterable[Any], now: Optional[datetime] = None) -> List[WeekDay]:
    """
    One ``WeekDay`` per day Monday..Sunday of the current calendar week.

    ``sessions`` is the full history; only sessions completed inside the
    week count. A day shows the first matching session in input order, so a
    second session on the same day is not displayed.
    """
    now = to_local(now) or datetime.now()
    start, _ = week_bounds(now)
    week_sessions = sessions_in_week(sessions, now)
    best = best_session(week_sessions)
    best_id = _field(best, "id") if best is not None else None

    days: List[WeekDay] = []
    for offset in range(7):
        day = start.date() + timedelta(days=offset)
        found = next(
            (s for s in week_sessions if to_local(_field(s, "completed_at")).date() == day),
            None,
        )
        days.append(WeekDay(
            day=DAY_LABELS[day.weekday()],
            date=day,
            delta=_field(found, "load_delta") if found is not None else None,
            completed=found is not None,
            isToday=day == now.date(),
            isBest=found is not None and best is not None and _field(found, "id") == best_id,
        ))
    return days


def summarize_best(session: Optional[Any]) -> Optional[BestSessionSummary]:
    if session is None:
        return None
    completed = to_local(_field(session, "completed_at"))
    return BestSessionSummary(
        day=completed.strftime("%a") if completed else "",
        delta=_field(session, "load_delta") or 0,
    )


def average_sharpness(checkins: Iterable[Any]) -> float:
    # display value; the persisted weekly average uses None for "no check-ins"
    values = [_field(c, "sharpness") for c in checkins]
    values = [v for v in values if v is not None]
    if not values:
        return 0
    return sum(values) / len(values)


def format_time(value: Any) -> str:
    """``9:05 PM``"""
    dt = to_local(value)
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{dt.hour % 12 or 12}:{dt.minute:02d} {suffix}"


def format_date(value: Any) -> str:
    """``Monday, Jan 5``"""
    dt = to_local(value)
    return f"{dt:%A}, {dt:%b} {dt.day}"


def month_key(value: Optional[date] = None) -> str:
    value = value or datetime.now().date()
    return f"{value.year:04d}-{value.month:02d}"
