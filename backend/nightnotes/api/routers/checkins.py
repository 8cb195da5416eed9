from __future__ import annotations
from fastapi import APIRouter, Depends, status

from nightnotes.api.deps import get_store
from nightnotes.schemas import CheckinRecord, CheckinReq, ProfileRecord
from nightnotes.services.auth_service import get_current_user
from nightnotes.services.store import SessionStore

router = APIRouter(prefix="/checkins", tags=["checkins"])


@router.post("", response_model=CheckinRecord, status_code=status.HTTP_201_CREATED)
async def morning_checkin(
    req: CheckinReq,
    store: SessionStore = Depends(get_store),
    current_user: ProfileRecord = Depends(get_current_user),
):
    # links to the most recent completed ritual, if there is one
    return await store.add_checkin(current_user.id, req.sharpness)
