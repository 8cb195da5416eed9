from __future__ import annotations
from fastapi import APIRouter, Depends

from nightnotes.api.deps import get_usage_counter
from nightnotes.schemas import ProfileRecord, ReflectReq, ReflectResp, UsageResp
from nightnotes.services.auth_service import get_current_user
from nightnotes.services.llm_client import TextGenerator, get_text_generator
from nightnotes.services.reflection import reflect_on_dream, validate_dream
from nightnotes.services.usage import ReflectionUsageCounter

router = APIRouter(prefix="/reflect", tags=["reflect"])


@router.post("", response_model=ReflectResp)
async def reflect(
    req: ReflectReq,
    generator: TextGenerator = Depends(get_text_generator),
    usage: ReflectionUsageCounter = Depends(get_usage_counter),
    current_user: ProfileRecord = Depends(get_current_user),
):
    # bad input is a 400 even when the allowance is used up
    validate_dream(req.dream, req.mood)
    await usage.check(current_user.id)
    reflection = await reflect_on_dream(generator, req.dream, req.mood)
    # only successful reflections count against the allowance
    await usage.record(current_user.id)
    return ReflectResp(reflection=reflection)


@router.get("/usage", response_model=UsageResp)
async def reflect_usage(
    usage: ReflectionUsageCounter = Depends(get_usage_counter),
    current_user: ProfileRecord = Depends(get_current_user),
):
    return await usage.usage(current_user.id)
