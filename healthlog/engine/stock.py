"""Medication schedules, stock, and refill-date projection.

The projected refill date is stored on the medication and recomputed on
every change to stock quantity, tablets per dose, dose times or frequency;
it is never derived lazily at read time.

Monthly cycles count as 30 days. This is a fixed approximation, not the
calendar month length.
"""

from __future__ import annotations

import math
import re
from datetime import date, timedelta
from typing import Any, Iterable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from healthlog.config import settings
from healthlog.engine import connector, features
from healthlog.engine.errors import InvalidInput, NotAuthorized, NotFound
from healthlog.engine.models import Frequency, MedicationIn, MedicationRecord

logger = structlog.get_logger(__name__)

CYCLE_DAYS: dict[Frequency, int] = {
    Frequency.daily: 1,
    Frequency.weekly: 7,
    Frequency.monthly: 30,
}

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def project_refill_date(
    stock_quantity: int,
    tablets_per_dose: int,
    times: Iterable[str],
    frequency: Frequency | str,
    today: date | None = None,
) -> date | None:
    """Date to refill by: today + whole days of stock left - safety buffer.

    None when there is nothing to project (no stock, no dose size, no times).
    The result may already be in the past when stock is critically low;
    callers treat that as a low-stock alert.
    """
    distinct_times = set(times or [])
    if not stock_quantity or stock_quantity <= 0 or not tablets_per_dose or tablets_per_dose <= 0:
        return None
    if not distinct_times:
        return None

    tablets_per_cycle = len(distinct_times) * tablets_per_dose
    cycles_until_empty = stock_quantity / tablets_per_cycle
    days_until_empty = math.floor(cycles_until_empty * CYCLE_DAYS[Frequency(frequency)])

    if today is None:
        today = features.local_today(settings.default_tz)
    return today + timedelta(days=days_until_empty - settings.refill_buffer_days)


# ---------------------------------------------------------------------------
# Input normalisation
# ---------------------------------------------------------------------------

def normalize_time(value: Any) -> str:
    if not isinstance(value, str) or not _TIME_RE.match(value.strip()):
        raise InvalidInput(f"Invalid time {value!r}; expected HH:MM")
    return value.strip()


def normalize_times(values: Iterable[Any] | None) -> list[str]:
    """Validated dose times with duplicates dropped, first occurrence kept."""
    times: list[str] = []
    for v in values or []:
        t = normalize_time(v)
        if t not in times:
            times.append(t)
    if not times:
        raise InvalidInput("At least one dose time is required")
    return times


def parse_frequency(value: Any) -> Frequency:
    try:
        return Frequency(value)
    except ValueError:
        allowed = ", ".join(f.value for f in Frequency)
        raise InvalidInput(f"Invalid frequency {value!r}. Must be one of: {allowed}")


def _non_negative_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInput(f"{name} must be a non-negative integer")
    return value


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInput(f"{name} must be a positive integer")
    return value


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def refresh_refill_date(record: MedicationRecord, today: date | None = None) -> MedicationRecord:
    if today is None:
        today = features.local_today(settings.default_tz)
    record.estimated_refill_date = project_refill_date(
        record.stock_quantity, record.tablets_per_dose, record.times, record.frequency, today
    )
    logger.info(
        "refill_date_projected",
        medication_id=record.id,
        stock_quantity=record.stock_quantity,
        refill_date=record.estimated_refill_date.isoformat() if record.estimated_refill_date else None,
    )
    status = features.refill_status(record.estimated_refill_date, today, settings.low_stock_days)
    if status in ("overdue", "soon"):
        logger.warning("low_stock", medication_id=record.id, tablet_name=record.tablet_name, status=status)
    return record


async def _owned(
    session: AsyncSession,
    user_id: str,
    medication_id: int,
    for_update: bool = False,
) -> MedicationRecord:
    row = await connector.fetch_medication(session, medication_id, for_update=for_update)
    if row is None:
        raise NotFound(f"Medication {medication_id} not found")
    if row["user_id"] != user_id:
        raise NotAuthorized(f"Medication {medication_id} belongs to another user")
    return MedicationRecord.from_row(row)


async def create_medication(session: AsyncSession, user_id: str, payload: MedicationIn) -> MedicationRecord:
    name = (payload.tablet_name or "").strip()
    if not name or not payload.times or not payload.start_date or not payload.frequency:
        raise InvalidInput("All fields are required")
    try:
        start_date = date.fromisoformat(payload.start_date)
    except ValueError:
        raise InvalidInput(f"Invalid start date: {payload.start_date}")

    stock_quantity = 0 if payload.stock_quantity is None else _non_negative_int(payload.stock_quantity, "stock_quantity")
    per_dose = 1 if payload.tablets_per_dose is None else _positive_int(payload.tablets_per_dose, "tablets_per_dose")

    record = MedicationRecord(
        id=0,
        user_id=user_id,
        tablet_name=name,
        times=normalize_times(payload.times),
        start_date=start_date,
        frequency=parse_frequency(payload.frequency),
        stock_quantity=stock_quantity,
        tablets_per_dose=per_dose,
    )
    refresh_refill_date(record)
    row = await connector.insert_medication(session, record)
    await connector.commit(session)
    created = MedicationRecord.from_row(row)
    logger.info("medication_created", user_id=user_id, medication_id=created.id)
    return created


async def update_stock(
    session: AsyncSession,
    user_id: str,
    medication_id: int,
    stock_quantity: int | None = None,
    tablets_per_dose: int | None = None,
) -> MedicationRecord:
    """Unspecified values keep their current setting; the refill date is always recomputed."""
    if stock_quantity is not None:
        _non_negative_int(stock_quantity, "stock_quantity")
    if tablets_per_dose is not None:
        _positive_int(tablets_per_dose, "tablets_per_dose")

    record = await _owned(session, user_id, medication_id, for_update=True)
    if stock_quantity is not None:
        record.stock_quantity = stock_quantity
    if tablets_per_dose is not None:
        record.tablets_per_dose = tablets_per_dose
    refresh_refill_date(record)
    await connector.save_medication(session, record)
    await connector.commit(session)
    return record


async def update_schedule(
    session: AsyncSession,
    user_id: str,
    medication_id: int,
    times: list[str] | None = None,
    frequency: str | None = None,
) -> MedicationRecord:
    new_times = normalize_times(times) if times is not None else None
    new_frequency = parse_frequency(frequency) if frequency is not None else None

    record = await _owned(session, user_id, medication_id, for_update=True)
    if new_times is not None:
        record.times = new_times
    if new_frequency is not None:
        record.frequency = new_frequency
    refresh_refill_date(record)
    await connector.save_medication(session, record)
    await connector.commit(session)
    return record


async def mark_taken(session: AsyncSession, user_id: str, medication_id: int, time: Any) -> MedicationRecord:
    """Append (today, time) to the taken log. Repeated marks are kept; readers dedupe."""
    clean_time = normalize_time(time)
    await _owned(session, user_id, medication_id)
    today = features.local_today(settings.default_tz)
    await connector.append_taken(session, medication_id, today, clean_time)
    await connector.commit(session)
    return await _owned(session, user_id, medication_id)


async def list_medications(session: AsyncSession, user_id: str) -> list[MedicationRecord]:
    rows = await connector.list_medication_rows(session, user_id)
    return [MedicationRecord.from_row(r) for r in rows]


async def get_medication(session: AsyncSession, user_id: str, medication_id: int) -> MedicationRecord:
    return await _owned(session, user_id, medication_id)


def taken_on(record: MedicationRecord, day: date) -> list[str]:
    """Distinct dose times marked taken on `day`, in logging order."""
    return [e.time for e in features.dedupe_taken_log(record.taken_log) if e.day == day]
