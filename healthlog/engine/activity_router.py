"""Activity HTTP router: daily records, steps, targets, exercises."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from healthlog.auth import current_user
from healthlog.config import settings
from healthlog.db import get_session
from healthlog.engine import features, store, targets
from healthlog.engine.errors import InvalidInput
from healthlog.engine.models import (
    ActivityRecord,
    Exercise,
    ExerciseIn,
    ExerciseUpdateIn,
    MonthlyTargetSummary,
    StepsIn,
    TargetIn,
    WorkoutTypeIn,
)

router = APIRouter(prefix="/activity", tags=["activity"])


def parse_day(value: str | None, name: str = "date") -> date:
    """YYYY-MM-DD, or today in the configured timezone when omitted."""
    if not value:
        return features.local_today(settings.default_tz)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidInput(f"Invalid date for '{name}': {value}")


def _parse_month(value: str | None) -> tuple[int, int]:
    if not value:
        today = features.local_today(settings.default_tz)
        return today.year, today.month
    try:
        first = date.fromisoformat(f"{value}-01")
    except ValueError:
        raise InvalidInput(f"Invalid month: {value} (expected YYYY-MM)")
    return first.year, first.month


@router.get("", response_model=ActivityRecord)
async def get_activity(
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
    day: str | None = Query(default=None, alias="date", description="Date (YYYY-MM-DD, default today)"),
) -> ActivityRecord:
    return await store.resolve(session, user_id, parse_day(day))


@router.post("/steps", response_model=ActivityRecord)
async def add_steps(
    body: StepsIn,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> ActivityRecord:
    return await store.increment_steps(session, user_id, parse_day(body.date), body.steps)


@router.post("/target")
async def set_target(
    body: TargetIn,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> ActivityRecord | MonthlyTargetSummary:
    return await targets.set_target(
        session, user_id, body.target, parse_day(body.date), body.apply_to_whole_month
    )


@router.post("/workout-type", response_model=ActivityRecord)
async def set_workout_type(
    body: WorkoutTypeIn,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> ActivityRecord:
    return await store.set_workout_type(session, user_id, parse_day(body.date), body.workout_type)


@router.post("/exercises", response_model=ActivityRecord)
async def add_exercise(
    body: ExerciseIn,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> ActivityRecord:
    return await store.add_exercise(
        session, user_id, parse_day(body.date), body.name, body.category, body.sets, body.notes
    )


@router.put("/exercises/{exercise_id}", response_model=ActivityRecord)
async def update_exercise(
    exercise_id: int,
    body: ExerciseUpdateIn,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> ActivityRecord:
    return await store.update_exercise(
        session, user_id, parse_day(body.date), exercise_id, body.sets, body.notes
    )


@router.delete("/exercises/{exercise_id}", response_model=ActivityRecord)
async def remove_exercise(
    exercise_id: int,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
    day: str | None = Query(default=None, alias="date"),
) -> ActivityRecord:
    return await store.remove_exercise(session, user_id, parse_day(day), exercise_id)


@router.get("/exercises/{category}")
async def exercises_by_category(
    category: str,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
    day: str | None = Query(default=None, alias="date"),
) -> dict[str, list[Exercise]]:
    return {"exercises": await store.exercises_by_category(session, user_id, parse_day(day), category)}


@router.get("/monthly", response_model=list[ActivityRecord])
async def monthly(
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
    month: str | None = Query(default=None, description="Month (YYYY-MM, default current)"),
) -> list[ActivityRecord]:
    year, mon = _parse_month(month)
    return await store.month_records(session, user_id, year, mon)
