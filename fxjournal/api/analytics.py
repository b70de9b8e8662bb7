"""Analytics routes: monthly and time-of-day breakdowns, key stats, stored rollups."""

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from fxjournal.api.deps import current_user, get_analytics
from fxjournal.services.analytics import AnalyticsService
from fxjournal.services.metrics import PeriodType

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/monthly")
async def monthly_breakdown(
    year: int = Query(..., ge=1970, le=9999),
    tag: list[str] = Query(default=[], description="Match any of these tags"),
    emotion: list[str] = Query(default=[], description="Match any of these emotions"),
    user_id: str = Depends(current_user),
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Per-month stats for trades entered in ``year``."""
    buckets = await analytics.monthly_breakdown(user_id, year, tag, emotion)
    return {"year": year, "months": [asdict(b) for b in buckets]}


@router.get("/hourly")
async def hourly_breakdown(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    tag: list[str] = Query(default=[]),
    emotion: list[str] = Query(default=[]),
    user_id: str = Depends(current_user),
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Per-hour-of-entry stats for one month."""
    buckets = await analytics.hourly_breakdown(user_id, year, month, tag, emotion)
    return {"year": year, "month": month, "hours": [asdict(b) for b in buckets]}


@router.get("/summary")
async def summary(
    start: date | None = Query(None),
    end: date | None = Query(None),
    tag: list[str] = Query(default=[]),
    emotion: list[str] = Query(default=[]),
    user_id: str = Depends(current_user),
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Key stats (win rate, payoff ratio, drawdown, streaks) for a date range."""
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    stats = await analytics.summary(user_id, start, end, tag, emotion)
    return asdict(stats)


@router.get("/rollups/{period_type}/{period_value}")
async def rollup(
    period_type: PeriodType,
    period_value: str,
    user_id: str = Depends(current_user),
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Stored rollup for one period, e.g. ``daily/2025-06-13`` or ``total/total``."""
    stats = await analytics.rollup(user_id, period_type, period_value)
    if stats is None:
        raise HTTPException(status_code=404, detail=f"No {period_type.value} rollup for {period_value}")
    return asdict(stats)
