from __future__ import annotations
from fastapi import APIRouter, Depends, status

from nightnotes.api.deps import get_store
from nightnotes.errors import NotFoundError
from nightnotes.schemas import LatestRitualResp, ProfileRecord, RitualCompleteResp, RitualSubmitReq
from nightnotes.services.auth_service import get_current_user
from nightnotes.services.store import SessionStore
from nightnotes.services.stats import format_date, format_time
from nightnotes.services.wizard import RitualWizard

router = APIRouter(prefix="/rituals", tags=["rituals"])


@router.post("", response_model=RitualCompleteResp, status_code=status.HTTP_201_CREATED)
async def complete_ritual(
    req: RitualSubmitReq,
    store: SessionStore = Depends(get_store),
    current_user: ProfileRecord = Depends(get_current_user),
):
    # 1) every step guard runs again server-side
    ritual = RitualWizard.replay(req)

    # 2) persist + streak
    session = await store.complete_session(current_user.id, ritual)
    streak = await store.get_streak(current_user.id)

    return RitualCompleteResp(
        session=session,
        delta=session.load_delta,
        before=session.load_before,
        after=session.load_after,
        streak=streak,
    )


@router.get("/latest", response_model=LatestRitualResp)
async def latest_ritual(
    store: SessionStore = Depends(get_store),
    current_user: ProfileRecord = Depends(get_current_user),
):
    """Last night's ritual, shown on the morning screen."""
    session = await store.latest_completed_session(current_user.id)
    if session is None:
        raise NotFoundError("No completed rituals yet.")
    return LatestRitualResp(
        **session.model_dump(),
        completed_time=format_time(session.completed_at),
        completed_date=format_date(session.completed_at),
    )
