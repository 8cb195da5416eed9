"""
Persistence for rituals, check-ins, streaks and weekly analyses.

``SessionStore`` wraps one request-scoped ``AsyncSession``; handlers receive
it explicitly instead of reaching for a global client. Rows are validated
into the pydantic records from ``nightnotes.schemas`` before they leave.
"""
from __future__ import annotations
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects import postgresql, sqlite

from nightnotes.models import (
    MorningCheckin, Profile, RitualSession, Streak, WeeklyAnalysis, local_now,
)
from nightnotes.schemas import (
    CheckinRecord, ProfileRecord, SessionRecord, StreakRecord, WeeklyAnalysisRecord,
)
from nightnotes.services.stats import to_local
from nightnotes.services.streaks import advance_streak
from nightnotes.services.wizard import CompletedRitual

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo is not None else value.astimezone()


class SessionStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ---------- profiles ----------

    async def get_or_create_profile(self, user_id: str, email: Optional[str] = None) -> ProfileRecord:
        profile = await self.db.get(Profile, user_id)
        if profile is None:
            profile = Profile(id=user_id, email=email)
            self.db.add(profile)
            await self.db.commit()
            await self.db.refresh(profile)
            logger.info("created profile for user %s", user_id)
        return ProfileRecord.model_validate(profile)

    async def update_profile(self, user_id: str, **values: Any) -> ProfileRecord:
        values = {k: v for k, v in values.items() if v is not None}
        if values:
            await self.db.execute(
                update(Profile).where(Profile.id == user_id).values(updated_at=local_now(), **values)
            )
            await self.db.commit()
        profile = await self.db.get(Profile, user_id, populate_existing=True)
        return ProfileRecord.model_validate(profile)

    # ---------- sessions ----------

    async def complete_session(self, user_id: str, ritual: CompletedRitual) -> SessionRecord:
        """Insert a finished ritual and advance the user's streak in one commit."""
        row = RitualSession(
            user_id=user_id,
            load_before=ritual.load_before,
            load_after=ritual.load_after,
            open_loops=ritual.open_loops,
            emotional_residue=ritual.emotional_residue,
            tomorrow_anchor=ritual.tomorrow_anchor,
            started_at=ritual.started_at,
            completed_at=ritual.completed_at,
            duration_seconds=ritual.duration_seconds,
            load_delta=ritual.load_before - ritual.load_after,
        )
        self.db.add(row)

        streak = (await self.db.execute(
            select(Streak).where(Streak.user_id == user_id)
        )).scalar_one_or_none()
        if streak is None:
            streak = Streak(user_id=user_id, current_streak=0, longest_streak=0)
            self.db.add(streak)
        nxt = advance_streak(
            streak.current_streak or 0,
            streak.longest_streak or 0,
            streak.last_session_date,
            to_local(ritual.completed_at).date(),
        )
        streak.current_streak = nxt.current_streak
        streak.longest_streak = nxt.longest_streak
        streak.last_session_date = nxt.last_session_date
        streak.updated_at = local_now()

        await self.db.commit()
        await self.db.refresh(row)
        return SessionRecord.model_validate(row)

    async def list_completed_sessions(
        self,
        user_id: str,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> List[SessionRecord]:
        q = (
            select(RitualSession)
            .where(RitualSession.user_id == user_id)
            .where(RitualSession.completed_at.is_not(None))
        )
        if since is not None:
            q = q.where(RitualSession.completed_at >= _aware(since))
        if until is not None:
            q = q.where(RitualSession.completed_at <= _aware(until))
        order = RitualSession.completed_at.desc() if newest_first else RitualSession.completed_at.asc()
        q = q.order_by(order)
        if limit is not None:
            q = q.limit(limit)
        rows = (await self.db.execute(q)).scalars().all()
        return [SessionRecord.model_validate(r) for r in rows]

    async def latest_completed_session(self, user_id: str) -> Optional[SessionRecord]:
        rows = await self.list_completed_sessions(user_id, limit=1)
        return rows[0] if rows else None

    async def list_all_sessions(self, user_id: str) -> List[SessionRecord]:
        rows = (await self.db.execute(
            select(RitualSession)
            .where(RitualSession.user_id == user_id)
            .order_by(RitualSession.created_at.asc())
        )).scalars().all()
        return [SessionRecord.model_validate(r) for r in rows]

    # ---------- morning check-ins ----------

    async def add_checkin(self, user_id: str, sharpness: int) -> CheckinRecord:
        last = await self.latest_completed_session(user_id)
        row = MorningCheckin(
            user_id=user_id,
            session_id=last.id if last else None,
            sharpness=sharpness,
        )
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return CheckinRecord.model_validate(row)

    async def list_checkins(self, user_id: str, *, since: Optional[datetime] = None) -> List[CheckinRecord]:
        q = select(MorningCheckin).where(MorningCheckin.user_id == user_id)
        if since is not None:
            q = q.where(MorningCheckin.created_at >= _aware(since))
        q = q.order_by(MorningCheckin.created_at.asc())
        rows = (await self.db.execute(q)).scalars().all()
        return [CheckinRecord.model_validate(r) for r in rows]

    # ---------- streaks ----------

    async def get_streak(self, user_id: str) -> Optional[StreakRecord]:
        row = (await self.db.execute(
            select(Streak).where(Streak.user_id == user_id)
        )).scalar_one_or_none()
        return StreakRecord.model_validate(row) if row else None

    # ---------- weekly analyses ----------

    async def upsert_weekly_analysis(self, user_id: str, values: Dict[str, Any]) -> WeeklyAnalysisRecord:
        """Insert or overwrite the row for (user_id, week_start)."""
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"upsert not supported on dialect {dialect!r}")

        # id comes from the column default on first insert and survives conflicts
        payload = dict(values, user_id=user_id, created_at=local_now())
        payload.pop("id", None)

        stmt = insert(WeeklyAnalysis).values(**payload)
        overwrite = {
            k: stmt.excluded[k] for k in payload if k not in ("user_id", "week_start")
        }
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "week_start"],
            set_=overwrite,
        )
        await self.db.execute(stmt)
        await self.db.commit()
        stored = await self.get_weekly_analysis(user_id, values["week_start"])
        return stored

    async def get_weekly_analysis(self, user_id: str, week_start: date) -> Optional[WeeklyAnalysisRecord]:
        row = (await self.db.execute(
            select(WeeklyAnalysis)
            .where(WeeklyAnalysis.user_id == user_id)
            .where(WeeklyAnalysis.week_start == week_start)
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        return WeeklyAnalysisRecord.model_validate(row) if row else None

    async def count_weekly_analyses(self, user_id: str) -> int:
        rows = (await self.db.execute(
            select(WeeklyAnalysis.id).where(WeeklyAnalysis.user_id == user_id)
        )).all()
        return len(rows)

    # ---------- export ----------

    async def export_user_data(self, user_id: str) -> Dict[str, Any]:
        return {
            "exported_at": local_now(),
            "sessions": await self.list_all_sessions(user_id),
            "morning_checkins": await self.list_checkins(user_id),
            "streak": await self.get_streak(user_id),
        }
