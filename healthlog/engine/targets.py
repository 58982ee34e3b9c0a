"""Step-target propagation: one day, or every day of a calendar month."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from healthlog.engine import connector, store
from healthlog.engine.models import ActivityRecord, MonthlyTargetSummary

logger = structlog.get_logger(__name__)


def month_days(day: date) -> list[date]:
    """Every calendar day of the month containing `day`, first to last."""
    start, end_exclusive = store.month_bounds(day.year, day.month)
    return [start + timedelta(days=i) for i in range((end_exclusive - start).days)]


async def set_target(
    session: AsyncSession,
    user_id: str,
    target_value: Any,
    day: date,
    apply_to_whole_month: bool = False,
) -> ActivityRecord | MonthlyTargetSummary:
    """Set the step target for `day`, or for its whole month.

    A single-day target is a one-off override (fixed_monthly False). A
    month-wide target marks every day fixed_monthly so it keeps carrying
    forward past the month end. Month-wide application commits day by day:
    a failure part-way leaves the committed days in place and a retry with
    the same arguments converges to the same end state. Steps, exercises and
    workout type on existing days are left as they are.
    """
    target = store.positive_int(target_value, "target")

    if not apply_to_whole_month:
        record = await store.get_or_create(session, user_id, day, for_update=True)
        record.target = target
        record.fixed_monthly = False
        await connector.save_activity(session, record)
        await connector.commit(session)
        return record

    days = month_days(day)
    for d in days:
        record = await store.get_or_create(session, user_id, d, for_update=True)
        record.target = target
        record.fixed_monthly = True
        await connector.save_activity(session, record)
        await connector.commit(session)

    month = f"{day.year:04d}-{day.month:02d}"
    logger.info("month_target_applied", user_id=user_id, month=month, target=target, days=len(days))
    return MonthlyTargetSummary(month=month, target=target, days_updated=len(days))
