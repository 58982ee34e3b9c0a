"""Training volume accounting on an ActivityRecord.

total_volume always equals the sum of reps * weight over every set of every
exercise on the record. Mutations apply the difference between the old and
new volume of the touched exercise instead of rewriting the total, with a
floor at zero against accumulated float drift.
"""

from __future__ import annotations

import math
from typing import Any, Sequence

import structlog

from healthlog.engine.errors import InvalidInput, NotFound, ValidationError
from healthlog.engine.models import (
    LOGGABLE_CATEGORIES,
    ActivityRecord,
    Exercise,
    ExerciseCategory,
    ExerciseSet,
)

logger = structlog.get_logger(__name__)

DEFAULT_REST_SECONDS = 60


def set_volume(s: ExerciseSet) -> float:
    return s.reps * s.weight


def exercise_volume(sets: Sequence[ExerciseSet]) -> float:
    return sum(set_volume(s) for s in sets)


def recompute_total(record: ActivityRecord) -> float:
    """From-scratch total over all current exercises."""
    return sum(exercise_volume(ex.sets) for ex in record.exercises)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, dict):
        return raw.get(name)
    return getattr(raw, name, None)


def _number(value: Any) -> float | None:
    """Finite int/float (bools rejected), else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def validate_sets(raw_sets: Sequence[Any] | None) -> list[ExerciseSet]:
    """Validate every set before returning any; the first bad set raises ValidationError."""
    if not raw_sets:
        raise InvalidInput("At least one set is required")

    cleaned: list[ExerciseSet] = []
    for index, raw in enumerate(raw_sets):
        reps = _number(_field(raw, "reps"))
        if reps is None or reps <= 0 or not reps.is_integer():
            raise ValidationError(f"Set {index + 1}: Invalid reps - must be a positive integer", index)

        raw_weight = _field(raw, "weight")
        weight = 0.0 if raw_weight is None else _number(raw_weight)
        if weight is None or weight < 0:
            raise ValidationError(f"Set {index + 1}: Invalid weight - must be a non-negative number", index)

        raw_rest = _field(raw, "rest_time")
        rest = float(DEFAULT_REST_SECONDS) if raw_rest is None else _number(raw_rest)
        if rest is None or rest <= 0 or not rest.is_integer():
            raise ValidationError(f"Set {index + 1}: Invalid rest time - must be a positive integer", index)

        cleaned.append(ExerciseSet(reps=int(reps), weight=weight, rest_time=int(rest)))
    return cleaned


def build_exercise(
    name: str | None,
    category: str | None,
    sets: Sequence[Any] | None,
    notes: str | None = None,
) -> Exercise:
    """Validated, not-yet-attached exercise (id 0 until appended to a record)."""
    clean_name = (name or "").strip()
    if not clean_name:
        raise InvalidInput("Exercise name is required")

    try:
        cat = ExerciseCategory(category)
    except ValueError:
        cat = None
    if cat not in LOGGABLE_CATEGORIES:
        allowed = ", ".join(c.value for c in LOGGABLE_CATEGORIES)
        raise InvalidInput(f"Valid category is required. Must be one of: {allowed}")

    return Exercise(
        id=0,
        name=clean_name,
        category=cat,
        sets=validate_sets(sets),
        notes=(notes or "").strip(),
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def _apply_delta(record: ActivityRecord, old_volume: float, new_volume: float, exercise_id: int) -> None:
    total = record.total_volume - old_volume + new_volume
    if total < 0:
        logger.warning(
            "total_volume_clamped",
            user_id=record.user_id,
            day=record.day.isoformat(),
            exercise_id=exercise_id,
            computed=total,
        )
        total = 0.0
    record.total_volume = total


def append_exercise(record: ActivityRecord, draft: Exercise) -> Exercise:
    exercise = draft.model_copy(update={"id": record.next_exercise_id})
    record.next_exercise_id += 1
    record.exercises.append(exercise)
    _apply_delta(record, 0.0, exercise_volume(exercise.sets), exercise.id)
    logger.info(
        "exercise_added",
        user_id=record.user_id,
        day=record.day.isoformat(),
        exercise_id=exercise.id,
        total_volume=record.total_volume,
    )
    return exercise


def add_exercise(
    record: ActivityRecord,
    name: str | None,
    category: str | None,
    sets: Sequence[Any] | None,
    notes: str | None = None,
) -> Exercise:
    return append_exercise(record, build_exercise(name, category, sets, notes))


def update_exercise(
    record: ActivityRecord,
    exercise_id: int,
    new_sets: Sequence[Any] | None,
    notes: str | None = None,
) -> Exercise:
    """Replace an exercise's sets (and notes, when given) and adjust the total by the volume difference."""
    cleaned = validate_sets(new_sets)
    exercise = record.find_exercise(exercise_id)
    if exercise is None:
        raise NotFound(f"Exercise {exercise_id} not found")

    old_volume = exercise_volume(exercise.sets)
    exercise.sets = cleaned
    if notes is not None:
        exercise.notes = notes.strip()
    _apply_delta(record, old_volume, exercise_volume(cleaned), exercise_id)
    logger.info(
        "exercise_updated",
        user_id=record.user_id,
        day=record.day.isoformat(),
        exercise_id=exercise_id,
        total_volume=record.total_volume,
    )
    return exercise


def remove_exercise(record: ActivityRecord, exercise_id: int) -> Exercise:
    exercise = record.find_exercise(exercise_id)
    if exercise is None:
        raise NotFound(f"Exercise {exercise_id} not found")

    _apply_delta(record, exercise_volume(exercise.sets), 0.0, exercise_id)
    record.exercises = [ex for ex in record.exercises if ex.id != exercise_id]
    logger.info(
        "exercise_removed",
        user_id=record.user_id,
        day=record.day.isoformat(),
        exercise_id=exercise_id,
        total_volume=record.total_volume,
    )
    return exercise
