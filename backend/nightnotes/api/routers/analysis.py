from __future__ import annotations
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from nightnotes.api.deps import get_store
from nightnotes.errors import NightNotesError, ParseError, ValidationError
from nightnotes.schemas import AnalysisReq, AnalysisResp
from nightnotes.services.auth_service import require_service_token
from nightnotes.services.llm_client import TextGenerator, get_text_generator
from nightnotes.services.store import SessionStore
from nightnotes.services.weekly_analysis import run_weekly_analysis

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post(
    "",
    response_model=AnalysisResp,
    dependencies=[Depends(require_service_token)],
)
async def weekly_analysis(
    req: AnalysisReq,
    store: SessionStore = Depends(get_store),
    generator: TextGenerator = Depends(get_text_generator),
):
    """Invoked by the external scheduler, once per user per run."""
    if not req.user_id:
        raise ValidationError("User ID required")

    try:
        result = await run_weekly_analysis(store, generator, req.user_id)
    except (ParseError, ValidationError):
        raise
    except NightNotesError as e:
        logger.warning("weekly analysis for %s failed upstream: %s", req.user_id, e.message)
        return JSONResponse(status_code=500, content={"error": "Analysis failed"})
    except Exception:
        logger.exception("weekly analysis failed for %s", req.user_id)
        return JSONResponse(status_code=500, content={"error": "Analysis failed"})

    if result.status == "no_data":
        return JSONResponse(status_code=404, content={"error": "No sessions found"})
    return AnalysisResp(analysis=result.analysis)
