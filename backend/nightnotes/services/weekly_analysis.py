"""
Weekly pattern analysis.

Source data is the trailing seven days before ``now``; the stored row is
keyed by the Monday of the current calendar week. The two windows differ on
purpose and are kept separate here.
"""
from __future__ import annotations
import json, logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import ValidationError as SchemaError

from nightnotes.config import (
    ANALYSIS_MAX_TOKENS, WEEKLY_ANALYSIS_GUIDELINE, WEEKLY_ANALYSIS_SYSTEM_PROMPT,
)
from nightnotes.errors import ParseError
from nightnotes.schemas import AnalysisPayload, CheckinRecord, SessionRecord, WeeklyAnalysisRecord
from nightnotes.services.llm_client import TextGenerator
from nightnotes.services.stats import to_local, trailing_window, week_bounds
from nightnotes.services.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class WeeklyAnalysisResult:
    status: Literal["ok", "no_data"]
    analysis: Optional[AnalysisPayload] = None
    record: Optional[WeeklyAnalysisRecord] = None


def summarize_sessions(sessions: Sequence[SessionRecord]) -> List[Dict[str, Any]]:
    out = []
    for s in sessions:
        completed = to_local(s.completed_at)
        out.append({
            "date": completed.strftime("%A"),
            "time": completed.strftime("%H:%M"),
            "load_before": s.load_before,
            "load_after": s.load_after,
            "delta": s.load_delta,
            "open_loops": s.open_loops,
            "emotional_residue": s.emotional_residue,
            "tomorrow_anchor": s.tomorrow_anchor,
        })
    return out


def summarize_checkins(checkins: Sequence[CheckinRecord]) -> List[Dict[str, Any]]:
    return [
        {
            "date": to_local(c.created_at).strftime("%A"),
            "sharpness": c.sharpness,
            "had_shutdown": bool(c.session_id),
        }
        for c in checkins
    ]


def build_analysis_prompt(session_summary: List[Dict[str, Any]], checkin_summary: List[Dict[str, Any]]) -> str:
    return (
        "Analyze this user's weekly shutdown ritual data. Be specific and actionable.\n\n"
        f"Sessions:\n{json.dumps(session_summary, indent=2, ensure_ascii=False)}\n\n"
        f"Morning check-ins:\n{json.dumps(checkin_summary, indent=2, ensure_ascii=False)}\n\n"
        f"Return JSON with these fields:\n{json.dumps(WEEKLY_ANALYSIS_GUIDELINE, indent=2)}\n\n"
        "Use their actual words. Be specific. Return only valid JSON."
    )


async def run_weekly_analysis(
    store: SessionStore,
    generator: TextGenerator,
    user_id: str,
    now: Optional[datetime] = None,
) -> WeeklyAnalysisResult:
    now = to_local(now) or datetime.now()
    window_start, window_end = trailing_window(now)

    # 1) rolling-window source data
    sessions = await store.list_completed_sessions(user_id, since=window_start, until=window_end)
    if not sessions:
        logger.info("weekly analysis for %s: no sessions since %s", user_id, window_start)
        return WeeklyAnalysisResult(status="no_data")
    checkins = await store.list_checkins(user_id, since=window_start)

    # 2) upstream analysis; nothing is written until it parses
    prompt = build_analysis_prompt(summarize_sessions(sessions), summarize_checkins(checkins))
    raw = await generator.complete_json(
        WEEKLY_ANALYSIS_SYSTEM_PROMPT, prompt, max_tokens=ANALYSIS_MAX_TOKENS
    )
    try:
        analysis = AnalysisPayload.model_validate(raw)
    except SchemaError as e:
        logger.warning("weekly analysis for %s had an unexpected shape: %s", user_id, e)
        raise ParseError("Failed to parse analysis") from e

    # 3) aggregates; unrounded, unlike the dashboard average
    avg_load_drop = sum((s.load_delta or 0) for s in sessions) / len(sessions)
    avg_sharpness = (
        sum(c.sharpness for c in checkins) / len(checkins) if checkins else None
    )

    # 4) one row per calendar week
    week_start, week_end = week_bounds(now)
    record = await store.upsert_weekly_analysis(user_id, {
        "week_start": week_start.date(),
        "week_end": week_end.date(),
        "total_sessions": len(sessions),
        "avg_load_drop": avg_load_drop,
        "avg_sharpness": avg_sharpness,
        "patterns": [p.model_dump() for p in analysis.patterns],
        "insights": analysis.insights,
        "common_themes": analysis.common_themes,
    })
    logger.info(
        "weekly analysis stored for %s (week %s, %d sessions)",
        user_id, week_start.date(), len(sessions),
    )
    return WeeklyAnalysisResult(status="ok", analysis=analysis, record=record)
