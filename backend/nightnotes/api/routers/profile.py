from fastapi import APIRouter, Depends, HTTPException, status

from nightnotes.api.deps import get_store
from nightnotes.schemas import ExportResp, ProfileRecord, SettingsUpdate
from nightnotes.services.auth_service import get_current_user
from nightnotes.services.store import SessionStore

router = APIRouter(prefix="/profile", tags=["profile"])


# [1] notification settings
@router.get("/settings", response_model=ProfileRecord)
async def get_settings(current_user: ProfileRecord = Depends(get_current_user)):
    return current_user


@router.put("/settings", response_model=ProfileRecord)
async def update_settings(
    settings_in: SettingsUpdate,
    store: SessionStore = Depends(get_store),
    current_user: ProfileRecord = Depends(get_current_user),
):
    update_data = settings_in.model_dump(exclude_unset=True, exclude_none=True)
    if not update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nothing to update.",
        )
    return await store.update_profile(current_user.id, **update_data)


# [2] data export
@router.get("/export", response_model=ExportResp)
async def export_data(
    store: SessionStore = Depends(get_store),
    current_user: ProfileRecord = Depends(get_current_user),
):
    """Everything stored for the caller: rituals, check-ins and streak."""
    return await store.export_user_data(current_user.id)
