"""Read-only snapshots shaped for the external advice generator."""

from __future__ import annotations

from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from healthlog.config import settings
from healthlog.engine import connector, features, stock, store
from healthlog.engine.models import (
    ActivityRecord,
    FitnessSnapshot,
    MedicationRecord,
    MedicationSnapshot,
    MedicationStock,
    SleepSnapshot,
)


def fitness_snapshot(record: ActivityRecord) -> FitnessSnapshot:
    progress = features.goal_progress_pct(record.steps_walked, float(record.target))
    return FitnessSnapshot(
        day=record.day,
        steps_walked=record.steps_walked,
        target=record.target,
        steps_remaining=record.steps_remaining,
        target_progress_pct=round(progress, 1) if progress is not None else None,
        status=features.goal_status(progress),
        workout_type=record.workout_type,
        total_volume=record.total_volume,
        exercise_count=len(record.exercises),
        exercises=record.exercises,
    )


def medication_snapshot(records: list[MedicationRecord], today: date) -> MedicationSnapshot:
    return MedicationSnapshot(
        day=today,
        medications=[
            MedicationStock(
                name=r.tablet_name,
                stock_quantity=r.stock_quantity,
                tablets_per_dose=r.tablets_per_dose,
                frequency=r.frequency,
                times=r.times,
                estimated_refill_date=r.estimated_refill_date,
                refill_status=features.refill_status(r.estimated_refill_date, today, settings.low_stock_days),
                doses_taken_today=stock.taken_on(r, today),
            )
            for r in records
        ],
    )


def sleep_snapshot(bedtime: str | None, wake_time: str | None) -> SleepSnapshot:
    return SleepSnapshot(
        bedtime=bedtime,
        wake_time=wake_time,
        duration_hours=features.sleep_duration_hours(bedtime, wake_time),
    )


async def load_fitness_snapshot(session: AsyncSession, user_id: str, day: date) -> FitnessSnapshot:
    """Snapshot of the day as stored.

    A day without a record reads as the record get_or_create would build
    (carried-forward target), but nothing is inserted.
    """
    row = await connector.fetch_activity(session, user_id, day)
    if row is not None:
        record = ActivityRecord.from_row(row)
    else:
        prior_row = await connector.fetch_latest_prior_activity(session, user_id, day)
        prior = ActivityRecord.from_row(prior_row) if prior_row else None
        record = store.new_record(user_id, day, prior)
    return fitness_snapshot(record)


async def load_medication_snapshot(session: AsyncSession, user_id: str, today: date) -> MedicationSnapshot:
    return medication_snapshot(await stock.list_medications(session, user_id), today)
