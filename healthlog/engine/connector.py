"""Database connector: async access to activity_records and medications.

activity_records is keyed by (user_id, date); the primary key doubles as the
per-user date index used for carry-forward ("latest date < day") lookups and
as the uniqueness constraint behind insert-if-absent. medications keeps its
dose times and taken log as JSONB arrays.

Every SQLAlchemy error surfaces as StorageFailure.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Sequence

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from healthlog.engine.errors import StorageFailure
from healthlog.engine.models import ActivityRecord, MedicationRecord

logger = structlog.get_logger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS activity_records (
        user_id TEXT NOT NULL,
        date DATE NOT NULL,
        steps_walked INTEGER NOT NULL DEFAULT 0,
        target INTEGER NOT NULL DEFAULT 1000,
        fixed_monthly BOOLEAN NOT NULL DEFAULT FALSE,
        workout_type TEXT,
        exercises JSONB NOT NULL DEFAULT '[]'::jsonb,
        total_volume DOUBLE PRECISION NOT NULL DEFAULT 0,
        workout_duration DOUBLE PRECISION NOT NULL DEFAULT 0,
        next_exercise_id INTEGER NOT NULL DEFAULT 1,
        PRIMARY KEY (user_id, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS medications (
        id BIGSERIAL PRIMARY KEY,
        user_id TEXT NOT NULL,
        tablet_name TEXT NOT NULL,
        times JSONB NOT NULL DEFAULT '[]'::jsonb,
        start_date DATE,
        frequency TEXT NOT NULL,
        stock_quantity INTEGER NOT NULL DEFAULT 0,
        tablets_per_dose INTEGER NOT NULL DEFAULT 1,
        taken_log JSONB NOT NULL DEFAULT '[]'::jsonb,
        estimated_refill_date DATE
    )
    """,
    "CREATE INDEX IF NOT EXISTS medications_user_id_idx ON medications (user_id)",
)

_ACTIVITY_COLUMNS = (
    "user_id, date, steps_walked, target, fixed_monthly, workout_type, "
    "exercises, total_volume, workout_duration, next_exercise_id"
)

_MEDICATION_COLUMNS = (
    "id, user_id, tablet_name, times, start_date, frequency, stock_quantity, "
    "tablets_per_dose, taken_log, estimated_refill_date"
)


async def ensure_schema(engine: AsyncEngine) -> None:
    try:
        async with engine.begin() as conn:
            for stmt in SCHEMA_STATEMENTS:
                await conn.execute(text(stmt))
    except SQLAlchemyError as exc:
        logger.error("storage_failure", op="ensure_schema", error=str(exc))
        raise StorageFailure("Could not initialise the database schema") from exc


async def _execute(session: AsyncSession, sql: str, params: dict[str, Any], op: str):
    try:
        return await session.execute(text(sql), params)
    except SQLAlchemyError as exc:
        logger.error("storage_failure", op=op, error=str(exc))
        raise StorageFailure(f"Storage unavailable during {op}") from exc


async def commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        logger.error("storage_failure", op="commit", error=str(exc))
        raise StorageFailure("Storage unavailable during commit") from exc


def _one(result) -> dict[str, Any] | None:
    row = result.fetchone()
    if row is None:
        return None
    return dict(zip(result.keys(), row))


def _all(result) -> list[dict[str, Any]]:
    columns = result.keys()
    return [dict(zip(columns, r)) for r in result.fetchall()]


# ---------------------------------------------------------------------------
# activity_records
# ---------------------------------------------------------------------------


def activity_params(record: ActivityRecord) -> dict[str, Any]:
    return {
        "user_id": record.user_id,
        "date": record.day,
        "steps_walked": record.steps_walked,
        "target": record.target,
        "fixed_monthly": record.fixed_monthly,
        "workout_type": record.workout_type.value if record.workout_type else None,
        "exercises": json.dumps([ex.model_dump(mode="json") for ex in record.exercises]),
        "total_volume": record.total_volume,
        "workout_duration": record.workout_duration,
        "next_exercise_id": record.next_exercise_id,
    }


async def fetch_activity(
    session: AsyncSession,
    user_id: str,
    day: date,
    for_update: bool = False,
) -> dict[str, Any] | None:
    """Fetch the row for exactly (user_id, day). With for_update the row stays locked until commit."""
    query = (
        f"SELECT {_ACTIVITY_COLUMNS} FROM activity_records "
        "WHERE user_id = :user_id AND date = :date"
    )
    if for_update:
        query += " FOR UPDATE"
    result = await _execute(session, query, {"user_id": user_id, "date": day}, "fetch_activity")
    return _one(result)


async def fetch_latest_prior_activity(
    session: AsyncSession,
    user_id: str,
    before: date,
) -> dict[str, Any] | None:
    """Most recent row for the user strictly before `before`, at any distance."""
    query = (
        f"SELECT {_ACTIVITY_COLUMNS} FROM activity_records "
        "WHERE user_id = :user_id AND date < :before "
        "ORDER BY date DESC LIMIT 1"
    )
    result = await _execute(
        session, query, {"user_id": user_id, "before": before}, "fetch_latest_prior_activity"
    )
    return _one(result)


async def insert_activity_if_absent(session: AsyncSession, record: ActivityRecord) -> bool:
    """Insert unless (user_id, date) already exists. Returns True when this call created the row."""
    query = (
        f"INSERT INTO activity_records ({_ACTIVITY_COLUMNS}) VALUES ("
        ":user_id, :date, :steps_walked, :target, :fixed_monthly, :workout_type, "
        "CAST(:exercises AS JSONB), :total_volume, :workout_duration, :next_exercise_id) "
        "ON CONFLICT (user_id, date) DO NOTHING RETURNING date"
    )
    result = await _execute(session, query, activity_params(record), "insert_activity_if_absent")
    return result.fetchone() is not None


async def save_activity(session: AsyncSession, record: ActivityRecord) -> None:
    query = (
        "UPDATE activity_records SET "
        "steps_walked = :steps_walked, target = :target, fixed_monthly = :fixed_monthly, "
        "workout_type = :workout_type, exercises = CAST(:exercises AS JSONB), "
        "total_volume = :total_volume, workout_duration = :workout_duration, "
        "next_exercise_id = :next_exercise_id "
        "WHERE user_id = :user_id AND date = :date"
    )
    await _execute(session, query, activity_params(record), "save_activity")


async def fetch_activity_range(
    session: AsyncSession,
    user_id: str,
    start: date,
    end_exclusive: date,
) -> Sequence[dict[str, Any]]:
    """Rows for [start, end_exclusive), ascending by date. Empty list when nothing is found."""
    query = (
        f"SELECT {_ACTIVITY_COLUMNS} FROM activity_records "
        "WHERE user_id = :user_id AND date >= :start AND date < :end "
        "ORDER BY date"
    )
    result = await _execute(
        session,
        query,
        {"user_id": user_id, "start": start, "end": end_exclusive},
        "fetch_activity_range",
    )
    return _all(result)


# ---------------------------------------------------------------------------
# medications
# ---------------------------------------------------------------------------


def _medication_params(record: MedicationRecord) -> dict[str, Any]:
    return {
        "user_id": record.user_id,
        "tablet_name": record.tablet_name,
        "times": json.dumps(record.times),
        "start_date": record.start_date,
        "frequency": record.frequency.value,
        "stock_quantity": record.stock_quantity,
        "tablets_per_dose": record.tablets_per_dose,
        "estimated_refill_date": record.estimated_refill_date,
    }


async def insert_medication(session: AsyncSession, record: MedicationRecord) -> dict[str, Any]:
    """Insert a new medication; the id on `record` is ignored and assigned by the database."""
    query = (
        "INSERT INTO medications (user_id, tablet_name, times, start_date, frequency, "
        "stock_quantity, tablets_per_dose, taken_log, estimated_refill_date) VALUES ("
        ":user_id, :tablet_name, CAST(:times AS JSONB), :start_date, :frequency, "
        ":stock_quantity, :tablets_per_dose, '[]'::jsonb, :estimated_refill_date) "
        f"RETURNING {_MEDICATION_COLUMNS}"
    )
    result = await _execute(session, query, _medication_params(record), "insert_medication")
    return _one(result)  # type: ignore[return-value]


async def fetch_medication(
    session: AsyncSession,
    medication_id: int,
    for_update: bool = False,
) -> dict[str, Any] | None:
    query = f"SELECT {_MEDICATION_COLUMNS} FROM medications WHERE id = :id"
    if for_update:
        query += " FOR UPDATE"
    result = await _execute(session, query, {"id": medication_id}, "fetch_medication")
    return _one(result)


async def list_medication_rows(session: AsyncSession, user_id: str) -> Sequence[dict[str, Any]]:
    query = f"SELECT {_MEDICATION_COLUMNS} FROM medications WHERE user_id = :user_id ORDER BY id"
    result = await _execute(session, query, {"user_id": user_id}, "list_medication_rows")
    return _all(result)


async def save_medication(session: AsyncSession, record: MedicationRecord) -> None:
    """Persist schedule, stock and refill estimate. The taken log is only ever appended."""
    query = (
        "UPDATE medications SET "
        "times = CAST(:times AS JSONB), frequency = :frequency, "
        "stock_quantity = :stock_quantity, tablets_per_dose = :tablets_per_dose, "
        "estimated_refill_date = :estimated_refill_date "
        "WHERE id = :id"
    )
    params = _medication_params(record)
    params["id"] = record.id
    await _execute(session, query, params, "save_medication")


async def append_taken(session: AsyncSession, medication_id: int, day: date, time: str) -> None:
    query = (
        "UPDATE medications SET taken_log = taken_log || CAST(:entry AS JSONB) "
        "WHERE id = :id"
    )
    entry = json.dumps([{"day": day.isoformat(), "time": time}])
    await _execute(session, query, {"id": medication_id, "entry": entry}, "append_taken")
