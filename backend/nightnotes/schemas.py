from __future__ import annotations
from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime

# Store records: every row leaving the store is validated into one of these

class SessionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    load_before: int = Field(ge=1, le=5)
    load_after: int = Field(ge=1, le=5)
    open_loops: Optional[str] = None
    emotional_residue: Optional[str] = None
    tomorrow_anchor: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    load_delta: int
    created_at: Optional[datetime] = None

class CheckinRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    session_id: Optional[str] = None
    sharpness: int = Field(ge=1, le=5)
    created_at: datetime

class StreakRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    last_session_date: Optional[date] = None
    updated_at: Optional[datetime] = None

PatternType = Literal["timing", "theme", "correlation", "trend"]

class PatternItem(BaseModel):
    type: PatternType
    title: str
    description: str

class AnalysisPayload(BaseModel):
    """Shape the text-generation service must return for a weekly analysis."""
    patterns: List[PatternItem]
    insights: str
    common_themes: Dict[str, int] = Field(default_factory=dict)

class WeeklyAnalysisRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    week_start: date
    week_end: date
    total_sessions: int
    avg_load_drop: float
    avg_sharpness: Optional[float] = None
    patterns: List[PatternItem]
    insights: str
    common_themes: Dict[str, int]
    created_at: Optional[datetime] = None

class ProfileRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    timezone: str = "UTC"
    morning_email_enabled: bool = True
    evening_reminder_enabled: bool = False

# Derived view rows

class WeekDay(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: str
    day_date: date = Field(alias="date")
    delta: Optional[int] = None
    completed: bool
    is_today: bool = Field(alias="isToday")
    is_best: bool = Field(alias="isBest")

class BestSessionSummary(BaseModel):
    day: str          # "Mon"
    delta: int

# Ritual flow

class RitualSubmitReq(BaseModel):
    load_before: Optional[int] = None
    open_loops: Optional[str] = None
    emotional_residue: Optional[str] = None
    tomorrow_anchor: Optional[str] = None
    load_after: Optional[int] = None
    started_at: Optional[datetime] = None

class LatestRitualResp(SessionRecord):
    completed_time: Optional[str] = None   # "9:05 PM"
    completed_date: Optional[str] = None   # "Monday, Jan 5"

class RitualCompleteResp(BaseModel):
    session: SessionRecord
    delta: int
    before: int
    after: int
    streak: Optional[StreakRecord] = None

class CheckinReq(BaseModel):
    sharpness: int = Field(..., ge=1, le=5)

# Views

class DashboardResp(BaseModel):
    avg_drop: float
    streak: int
    week: List[WeekDay]
    is_first_session: bool

class InsightsResp(BaseModel):
    week_start: date
    week_end: date
    sessions: List[SessionRecord]
    avg_drop: float
    best_session: Optional[BestSessionSummary] = None
    avg_sharpness: float
    week: List[WeekDay]
    streak: int
    analysis: Optional[WeeklyAnalysisRecord] = None

# Weekly analysis

class AnalysisReq(BaseModel):
    user_id: Optional[str] = None

class AnalysisResp(BaseModel):
    analysis: AnalysisPayload

# Dream reflection

class ReflectReq(BaseModel):
    dream: Optional[str] = None
    mood: Optional[str] = None

class ReflectResp(BaseModel):
    reflection: str

class UsageResp(BaseModel):
    month: str
    used: int
    limit: int
    remaining: Optional[int] = None  # None when unlimited

# Profile

class SettingsUpdate(BaseModel):
    morning_email_enabled: Optional[bool] = None
    evening_reminder_enabled: Optional[bool] = None

class ExportResp(BaseModel):
    exported_at: datetime
    sessions: List[SessionRecord]
    morning_checkins: List[CheckinRecord]
    streak: Optional[StreakRecord] = None
