from __future__ import annotations
from typing import Optional
from datetime import date, datetime
import uuid

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String, Text, Integer, Float, Date, DateTime, Boolean, JSON,
    CheckConstraint, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from nightnotes.db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


def local_now() -> datetime:
    """Timezone-aware wall clock of the host."""
    return datetime.now().astimezone()


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    timezone: Mapped[str] = mapped_column(String, default="UTC", nullable=False)
    morning_email_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    evening_reminder_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=local_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=local_now, onupdate=local_now
    )

    sessions: Mapped[list["RitualSession"]] = relationship(back_populates="profile")


class RitualSession(Base):
    """One completed shutdown ritual. Rows are inserted, never edited."""
    __tablename__ = "sessions"
    __table_args__ = (
        CheckConstraint("load_before between 1 and 5", name="ck_sessions_load_before"),
        CheckConstraint("load_after between 1 and 5", name="ck_sessions_load_after"),
        Index("idx_sessions_user_completed", "user_id", "completed_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    load_before: Mapped[int] = mapped_column(Integer, nullable=False)
    load_after: Mapped[int] = mapped_column(Integer, nullable=False)
    open_loops: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    emotional_residue: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tomorrow_anchor: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # load_before - load_after, always computed by the store
    load_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=local_now)

    profile: Mapped["Profile"] = relationship(back_populates="sessions")


class MorningCheckin(Base):
    __tablename__ = "morning_checkins"
    __table_args__ = (
        CheckConstraint("sharpness between 1 and 5", name="ck_checkins_sharpness"),
        Index("idx_checkins_user_created", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    # weak link, not re-validated after insert
    session_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True
    )
    sharpness: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=local_now)


class Streak(Base):
    __tablename__ = "streaks"
    __table_args__ = (
        CheckConstraint("current_streak >= 0", name="ck_streaks_current"),
        CheckConstraint("longest_streak >= 0", name="ck_streaks_longest"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_session_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=local_now, onupdate=local_now
    )


class WeeklyAnalysis(Base):
    __tablename__ = "weekly_analyses"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_analyses_user_week"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_load_drop: Mapped[float] = mapped_column(Float, nullable=False)
    avg_sharpness: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    patterns: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    insights: Mapped[str] = mapped_column(Text, nullable=False, default="")
    common_themes: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=local_now)


class ReflectionUsage(Base):
    """Dream reflections used per user per calendar month ("YYYY-MM")."""
    __tablename__ = "reflection_usage"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    month: Mapped[str] = mapped_column(String(7), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
