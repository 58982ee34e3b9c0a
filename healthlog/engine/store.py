"""Per-day activity records: lookup with carry-forward, and locked read-modify-write.

A day with no record yet inherits its step target from the latest earlier
record of the same user, but only when that record's target was set by a
month-wide propagation (fixed_monthly). Otherwise the configured default
target applies.

Each mutating operation resolves the day under a row lock, mutates the
in-memory record, saves and commits. Input validation runs before the
first read so a rejected request writes nothing.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Any, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from healthlog.config import settings
from healthlog.engine import connector, volume
from healthlog.engine.errors import InvalidInput, NotFound, StorageFailure
from healthlog.engine.models import ActivityRecord, Exercise, ExerciseCategory, WorkoutType

logger = structlog.get_logger(__name__)


def positive_int(value: Any, name: str) -> int:
    """Accept ints (and integral floats) above zero; anything else is InvalidInput."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"Valid {name} value is required")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidInput(f"{name} must be a whole number")
    if value <= 0:
        raise InvalidInput(f"{name} must be a positive integer")
    return int(value)


def carry_forward_target(prior: ActivityRecord | None) -> int:
    if prior is not None and prior.fixed_monthly:
        return prior.target
    return settings.default_step_target


def new_record(user_id: str, day: date, prior: ActivityRecord | None) -> ActivityRecord:
    return ActivityRecord(
        user_id=user_id,
        day=day,
        target=carry_forward_target(prior),
        fixed_monthly=False,
        steps_walked=0,
        total_volume=0.0,
        exercises=[],
    )


async def get_or_create(
    session: AsyncSession,
    user_id: str,
    day: date,
    for_update: bool = False,
) -> ActivityRecord:
    """Return the record for exactly `day`, creating it with carry-forward defaults if absent.

    Creation is insert-if-absent on (user_id, date): when a concurrent request
    wins the insert, the winner's row is re-read and returned.
    """
    row = await connector.fetch_activity(session, user_id, day, for_update=for_update)
    if row is not None:
        return ActivityRecord.from_row(row)

    prior_row = await connector.fetch_latest_prior_activity(session, user_id, day)
    prior = ActivityRecord.from_row(prior_row) if prior_row else None
    created = await connector.insert_activity_if_absent(session, new_record(user_id, day, prior))
    if created:
        logger.info(
            "activity_record_created",
            user_id=user_id,
            day=day.isoformat(),
            carried_from=prior.day.isoformat() if prior and prior.fixed_monthly else None,
        )

    row = await connector.fetch_activity(session, user_id, day, for_update=for_update)
    if row is None:
        raise StorageFailure(f"Activity record for {day.isoformat()} vanished after insert")
    return ActivityRecord.from_row(row)


async def fetch_existing(session: AsyncSession, user_id: str, day: date) -> ActivityRecord:
    """Locked read of a record that must already exist."""
    row = await connector.fetch_activity(session, user_id, day, for_update=True)
    if row is None:
        raise NotFound(f"No activity recorded for {day.isoformat()}")
    return ActivityRecord.from_row(row)


async def _save(session: AsyncSession, record: ActivityRecord) -> ActivityRecord:
    await connector.save_activity(session, record)
    await connector.commit(session)
    return record


async def resolve(session: AsyncSession, user_id: str, day: date) -> ActivityRecord:
    """Read (creating if needed) and commit so the created record is durable."""
    record = await get_or_create(session, user_id, day)
    await connector.commit(session)
    return record


async def increment_steps(session: AsyncSession, user_id: str, day: date, delta: Any) -> ActivityRecord:
    steps = positive_int(delta, "steps")
    record = await get_or_create(session, user_id, day, for_update=True)
    record.steps_walked += steps
    logger.info("steps_incremented", user_id=user_id, day=day.isoformat(), delta=steps, total=record.steps_walked)
    return await _save(session, record)


async def set_workout_type(
    session: AsyncSession,
    user_id: str,
    day: date,
    workout_type: str | None,
) -> ActivityRecord:
    wt: WorkoutType | None = None
    if workout_type:
        try:
            wt = WorkoutType(workout_type)
        except ValueError:
            allowed = ", ".join(t.value for t in WorkoutType)
            raise InvalidInput(f"Invalid workout type. Must be one of: {allowed}")
    record = await get_or_create(session, user_id, day, for_update=True)
    record.workout_type = wt
    return await _save(session, record)


async def add_exercise(
    session: AsyncSession,
    user_id: str,
    day: date,
    name: str | None,
    category: str | None,
    sets: Sequence[Any] | None,
    notes: str | None = None,
) -> ActivityRecord:
    draft = volume.build_exercise(name, category, sets, notes)
    record = await get_or_create(session, user_id, day, for_update=True)
    volume.append_exercise(record, draft)
    return await _save(session, record)


async def update_exercise(
    session: AsyncSession,
    user_id: str,
    day: date,
    exercise_id: int,
    sets: Sequence[Any] | None,
    notes: str | None = None,
) -> ActivityRecord:
    cleaned = volume.validate_sets(sets)
    record = await fetch_existing(session, user_id, day)
    volume.update_exercise(record, exercise_id, cleaned, notes)
    return await _save(session, record)


async def remove_exercise(session: AsyncSession, user_id: str, day: date, exercise_id: int) -> ActivityRecord:
    record = await fetch_existing(session, user_id, day)
    volume.remove_exercise(record, exercise_id)
    return await _save(session, record)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First day of the month and the first day of the next month."""
    first_day = date(year, month, 1)
    _, last = calendar.monthrange(year, month)
    return first_day, first_day + timedelta(days=last)


async def month_records(session: AsyncSession, user_id: str, year: int, month: int) -> list[ActivityRecord]:
    """Existing records in the month, ascending by date. Missing days are not created."""
    start, end_exclusive = month_bounds(year, month)
    rows = await connector.fetch_activity_range(session, user_id, start, end_exclusive)
    return [ActivityRecord.from_row(r) for r in rows]


async def exercises_by_category(
    session: AsyncSession,
    user_id: str,
    day: date,
    category: str,
) -> list[Exercise]:
    try:
        cat = ExerciseCategory(category)
    except ValueError:
        raise InvalidInput(f"Unknown exercise category: {category}")
    row = await connector.fetch_activity(session, user_id, day)
    if row is None:
        return []
    return [ex for ex in ActivityRecord.from_row(row).exercises if ex.category == cat]
