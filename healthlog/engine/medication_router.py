"""Medication HTTP router: schedules, stock, taken log."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from healthlog.auth import current_user
from healthlog.db import get_session
from healthlog.engine import stock
from healthlog.engine.activity_router import parse_day
from healthlog.engine.models import MedicationIn, MedicationRecord, ScheduleIn, StockIn, TakenIn

router = APIRouter(prefix="/medications", tags=["medications"])


@router.get("", response_model=list[MedicationRecord])
async def list_medications(
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> list[MedicationRecord]:
    return await stock.list_medications(session, user_id)


@router.post("", response_model=MedicationRecord, status_code=201)
async def create_medication(
    body: MedicationIn,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> MedicationRecord:
    return await stock.create_medication(session, user_id, body)


@router.put("/{medication_id}/stock", response_model=MedicationRecord)
async def update_stock(
    medication_id: int,
    body: StockIn,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> MedicationRecord:
    return await stock.update_stock(session, user_id, medication_id, body.stock_quantity, body.tablets_per_dose)


@router.put("/{medication_id}/schedule", response_model=MedicationRecord)
async def update_schedule(
    medication_id: int,
    body: ScheduleIn,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> MedicationRecord:
    return await stock.update_schedule(session, user_id, medication_id, body.times, body.frequency)


@router.post("/{medication_id}/taken", response_model=MedicationRecord)
async def mark_taken(
    medication_id: int,
    body: TakenIn,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
) -> MedicationRecord:
    return await stock.mark_taken(session, user_id, medication_id, body.time)


@router.get("/{medication_id}/taken")
async def taken_for_day(
    medication_id: int,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
    day: str | None = Query(default=None, alias="date"),
) -> dict:
    target_day = parse_day(day)
    record = await stock.get_medication(session, user_id, medication_id)
    return {
        "medication_id": record.id,
        "date": target_day.isoformat(),
        "scheduled": record.times,
        "taken": stock.taken_on(record, target_day),
    }
