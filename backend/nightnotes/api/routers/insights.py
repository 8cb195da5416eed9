from __future__ import annotations
from datetime import datetime
from fastapi import APIRouter, Depends

from nightnotes.api.deps import get_store
from nightnotes.schemas import DashboardResp, InsightsResp, ProfileRecord
from nightnotes.services.auth_service import get_current_user
from nightnotes.services.stats import (
    average_sharpness, best_session, calculate_avg_drop, get_week_data,
    summarize_best, week_bounds,
)
from nightnotes.services.store import SessionStore

router = APIRouter(tags=["insights"])

DASHBOARD_HISTORY = 30


@router.get("/dashboard", response_model=DashboardResp, response_model_by_alias=True)
async def dashboard(
    store: SessionStore = Depends(get_store),
    current_user: ProfileRecord = Depends(get_current_user),
):
    sessions = await store.list_completed_sessions(current_user.id, limit=DASHBOARD_HISTORY)
    streak = await store.get_streak(current_user.id)

    avg_drop = calculate_avg_drop(sessions)
    current = streak.current_streak if streak else 0
    return DashboardResp(
        avg_drop=avg_drop,
        streak=current,
        week=get_week_data(sessions),
        is_first_session=current == 0 and avg_drop == 0,
    )


@router.get("/insights", response_model=InsightsResp, response_model_by_alias=True)
async def insights(
    store: SessionStore = Depends(get_store),
    current_user: ProfileRecord = Depends(get_current_user),
):
    """This calendar week at a glance, plus the stored weekly analysis if any."""
    now = datetime.now()
    week_start, week_end = week_bounds(now)

    sessions = await store.list_completed_sessions(current_user.id, since=week_start, until=week_end)
    streak = await store.get_streak(current_user.id)
    checkins = await store.list_checkins(current_user.id, since=week_start)
    analysis = await store.get_weekly_analysis(current_user.id, week_start.date())

    return InsightsResp(
        week_start=week_start.date(),
        week_end=week_end.date(),
        sessions=sessions,
        avg_drop=calculate_avg_drop(sessions),
        best_session=summarize_best(best_session(sessions)),
        avg_sharpness=average_sharpness(checkins),
        week=get_week_data(sessions, now),
        streak=streak.current_streak if streak else 0,
        analysis=analysis,
    )
