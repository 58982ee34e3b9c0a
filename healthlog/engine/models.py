"""Activity and medication records, request bodies, and advice snapshots: Pydantic v2."""

from __future__ import annotations

import json
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field

from healthlog.config import settings


class WorkoutType(str, Enum):
    push = "push"
    pull = "pull"
    legs = "legs"
    rest = "rest"
    cardio = "cardio"
    full_body = "full-body"


class ExerciseCategory(str, Enum):
    push = "push"
    pull = "pull"
    legs = "legs"
    core = "core"
    cardio = "cardio"


# Categories a user may log strength exercises under (cardio is tracked via steps).
LOGGABLE_CATEGORIES = (
    ExerciseCategory.push,
    ExerciseCategory.pull,
    ExerciseCategory.legs,
    ExerciseCategory.core,
)


class Frequency(str, Enum):
    daily = "Daily"
    weekly = "Weekly"
    monthly = "Monthly"


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


class ExerciseSet(BaseModel):
    reps: int
    weight: float = 0.0  # 0 = bodyweight
    rest_time: int = 60  # seconds


class Exercise(BaseModel):
    id: int  # unique within the owning record
    name: str
    category: ExerciseCategory
    sets: list[ExerciseSet] = Field(default_factory=list)
    notes: str = ""


class ActivityRecord(BaseModel):
    """One user's logged metrics for one calendar day."""

    user_id: str
    day: date
    steps_walked: int = 0
    target: int = Field(default_factory=lambda: settings.default_step_target)
    fixed_monthly: bool = False
    workout_type: WorkoutType | None = None
    exercises: list[Exercise] = Field(default_factory=list)
    total_volume: float = 0.0
    workout_duration: float = 0.0  # minutes
    next_exercise_id: int = 1

    @computed_field  # type: ignore[prop-decorator]
    @property
    def steps_remaining(self) -> int:
        return max(0, self.target - self.steps_walked)

    def find_exercise(self, exercise_id: int) -> Exercise | None:
        for ex in self.exercises:
            if ex.id == exercise_id:
                return ex
        return None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ActivityRecord:
        exercises = row.get("exercises") or []
        if isinstance(exercises, str):
            exercises = json.loads(exercises)
        return cls(
            user_id=row["user_id"],
            day=row["date"],
            steps_walked=row.get("steps_walked") or 0,
            target=row.get("target") or settings.default_step_target,
            fixed_monthly=bool(row.get("fixed_monthly")),
            workout_type=row.get("workout_type"),
            exercises=exercises,
            total_volume=float(row.get("total_volume") or 0.0),
            workout_duration=float(row.get("workout_duration") or 0.0),
            next_exercise_id=row.get("next_exercise_id") or 1,
        )


class MonthlyTargetSummary(BaseModel):
    month: str  # YYYY-MM
    target: int
    days_updated: int


# ---------------------------------------------------------------------------
# Medication
# ---------------------------------------------------------------------------


class TakenEntry(BaseModel):
    day: date
    time: str  # HH:MM


class MedicationRecord(BaseModel):
    id: int
    user_id: str
    tablet_name: str
    times: list[str] = Field(default_factory=list)
    start_date: date | None = None
    frequency: Frequency
    stock_quantity: int = 0
    tablets_per_dose: int = 1
    taken_log: list[TakenEntry] = Field(default_factory=list)
    estimated_refill_date: date | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> MedicationRecord:
        times = row.get("times") or []
        if isinstance(times, str):
            times = json.loads(times)
        taken = row.get("taken_log") or []
        if isinstance(taken, str):
            taken = json.loads(taken)
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            tablet_name=row["tablet_name"],
            times=times,
            start_date=row.get("start_date"),
            frequency=row["frequency"],
            stock_quantity=row.get("stock_quantity") or 0,
            tablets_per_dose=row.get("tablets_per_dose") or 1,
            taken_log=taken,
            estimated_refill_date=row.get("estimated_refill_date"),
        )


# ---------------------------------------------------------------------------
# Request bodies: numbers arrive unchecked (Any) so the engine validators see raw JSON values
# ---------------------------------------------------------------------------


class StepsIn(BaseModel):
    steps: Any = None
    date: str | None = None


class TargetIn(BaseModel):
    target: Any = None
    date: str | None = None
    apply_to_whole_month: bool = False


class WorkoutTypeIn(BaseModel):
    workout_type: str | None = None
    date: str | None = None


class SetIn(BaseModel):
    reps: Any = None
    weight: Any = None
    rest_time: Any = None


class ExerciseIn(BaseModel):
    name: str = ""
    category: str = ""
    sets: list[SetIn] = Field(default_factory=list)
    notes: str | None = None
    date: str | None = None


class ExerciseUpdateIn(BaseModel):
    sets: list[SetIn] = Field(default_factory=list)
    notes: str | None = None
    date: str | None = None


class MedicationIn(BaseModel):
    tablet_name: str = ""
    times: list[str] = Field(default_factory=list)
    start_date: str | None = None
    frequency: str | None = None
    stock_quantity: Any = None
    tablets_per_dose: Any = None


class StockIn(BaseModel):
    stock_quantity: Any = None
    tablets_per_dose: Any = None


class ScheduleIn(BaseModel):
    times: list[str] | None = None
    frequency: str | None = None


class TakenIn(BaseModel):
    time: str = ""


# ---------------------------------------------------------------------------
# Snapshots handed to the external advice generator
# ---------------------------------------------------------------------------


class FitnessSnapshot(BaseModel):
    day: date
    steps_walked: int
    target: int
    steps_remaining: int
    target_progress_pct: float | None = None
    status: str  # "red" | "yellow" | "green"
    workout_type: WorkoutType | None = None
    total_volume: float
    exercise_count: int
    exercises: list[Exercise] = Field(default_factory=list)


class MedicationStock(BaseModel):
    name: str
    stock_quantity: int
    tablets_per_dose: int
    frequency: Frequency
    times: list[str]
    estimated_refill_date: date | None = None
    refill_status: str  # "none" | "overdue" | "soon" | "ok"
    doses_taken_today: list[str] = Field(default_factory=list)


class MedicationSnapshot(BaseModel):
    day: date
    medications: list[MedicationStock] = Field(default_factory=list)


class SleepSnapshot(BaseModel):
    bedtime: str | None = None
    wake_time: str | None = None
    duration_hours: float = 0.0
    monthly_goal_hours: float = 7.0 * 30


class AdviceResponse(BaseModel):
    category: str
    recommendations: str
    snapshot: dict[str, Any] = Field(default_factory=dict)
