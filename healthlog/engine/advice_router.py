"""Advice HTTP router: snapshot export and pass-through recommendations."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from healthlog.auth import current_user
from healthlog.config import settings
from healthlog.db import get_session
from healthlog.engine import features, snapshots
from healthlog.engine.activity_router import parse_day
from healthlog.engine.advisor import RecommendationClient, get_advisor
from healthlog.engine.models import AdviceResponse

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

SNAPSHOT_CATEGORIES = {"fitness", "medication"}


async def _snapshot(session: AsyncSession, user_id: str, category: str, day: str | None) -> dict:
    if category == "fitness":
        snap = await snapshots.load_fitness_snapshot(session, user_id, parse_day(day))
    else:
        today = features.local_today(settings.default_tz)
        snap = await snapshots.load_medication_snapshot(session, user_id, today)
    return snap.model_dump(mode="json")


@router.get("/snapshot/{category}")
async def get_snapshot(
    category: str,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
    day: str | None = Query(default=None, alias="date"),
) -> dict:
    if category not in SNAPSHOT_CATEGORIES:
        raise HTTPException(status_code=404, detail=f"Unknown snapshot category: {category}")
    return await _snapshot(session, user_id, category, day)


@router.get("/sleep", response_model=AdviceResponse)
async def sleep_advice(
    _: str = Depends(current_user),
    advisor: RecommendationClient = Depends(get_advisor),
    bedtime: str | None = Query(default=None, description="HH:MM"),
    wake_time: str | None = Query(default=None, description="HH:MM"),
    goals: list[str] = Query(default=[]),
) -> AdviceResponse:
    snap = snapshots.sleep_snapshot(bedtime, wake_time).model_dump(mode="json")
    text = await advisor.generate("sleep", snap, goals)
    return AdviceResponse(category="sleep", recommendations=text, snapshot=snap)


@router.get("/{category}", response_model=AdviceResponse)
async def get_advice(
    category: str,
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user),
    advisor: RecommendationClient = Depends(get_advisor),
    day: str | None = Query(default=None, alias="date"),
    goals: list[str] = Query(default=[]),
) -> AdviceResponse:
    if category not in SNAPSHOT_CATEGORIES:
        raise HTTPException(status_code=404, detail=f"Unknown advice category: {category}")
    snap = await _snapshot(session, user_id, category, day)
    text = await advisor.generate(category, snap, goals)
    return AdviceResponse(category=category, recommendations=text, snapshot=snap)
