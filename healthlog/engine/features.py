"""Pure stateless feature functions: math only, never raises."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from healthlog.engine.models import TakenEntry


def local_today(tz_name: str) -> date:
    """Current calendar date in the given timezone."""
    return datetime.now(ZoneInfo(tz_name)).date()


# ---------------------------------------------------------------------------
# Goal helpers
# ---------------------------------------------------------------------------

def goal_progress_pct(value: float | None, target_value: float) -> float | None:
    """Progress percentage (0-100) toward a minimum goal: value / target * 100, capped at 100.

    Returns None if value is None or the target is zero.
    """
    if value is None or target_value == 0.0:
        return None
    return min(100.0, (value / target_value) * 100.0)


def goal_status(progress_pct: float | None) -> str:
    """Map progress percentage to a status label."""
    if progress_pct is None:
        return "red"
    if progress_pct >= 100.0:
        return "green"
    if progress_pct >= 50.0:
        return "yellow"
    return "red"


# ---------------------------------------------------------------------------
# Medication helpers
# ---------------------------------------------------------------------------

def dedupe_taken_log(entries: list[TakenEntry]) -> list[TakenEntry]:
    """Collapse repeated (day, time) marks, keeping first-seen order."""
    seen: set[tuple[date, str]] = set()
    unique: list[TakenEntry] = []
    for entry in entries:
        key = (entry.day, entry.time)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique


def refill_status(refill_date: date | None, today: date, soon_days: int = 7) -> str:
    """Classify a projected refill date.

    "none" when nothing is projected, "overdue" when already due,
    "soon" within `soon_days`, otherwise "ok".
    """
    if refill_date is None:
        return "none"
    if refill_date <= today:
        return "overdue"
    if refill_date <= today + timedelta(days=soon_days):
        return "soon"
    return "ok"


# ---------------------------------------------------------------------------
# Sleep helpers
# ---------------------------------------------------------------------------

def sleep_duration_hours(bedtime: str | None, wake_time: str | None) -> float:
    """Hours slept between two HH:MM clock times; a wake time before bedtime means the next day.

    Returns 0.0 when either time is missing or malformed.
    """
    if not bedtime or not wake_time:
        return 0.0
    try:
        start = datetime.strptime(bedtime, "%H:%M")
        end = datetime.strptime(wake_time, "%H:%M")
    except ValueError:
        return 0.0
    if end < start:
        end += timedelta(days=1)
    return round((end - start).total_seconds() / 3600, 1)
