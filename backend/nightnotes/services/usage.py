from __future__ import annotations
import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nightnotes.config import REFLECTION_MONTHLY_LIMIT
from nightnotes.errors import QuotaExceededError
from nightnotes.models import ReflectionUsage
from nightnotes.schemas import UsageResp
from nightnotes.services.stats import month_key

logger = logging.getLogger(__name__)


class ReflectionUsageCounter:
    """Monthly dream-reflection allowance, counted per user on the server."""

    def __init__(self, db: AsyncSession, limit: int = REFLECTION_MONTHLY_LIMIT):
        self.db = db
        self.limit = limit

    async def _row(self, user_id: str, month: str) -> Optional[ReflectionUsage]:
        return (await self.db.execute(
            select(ReflectionUsage)
            .where(ReflectionUsage.user_id == user_id)
            .where(ReflectionUsage.month == month)
        )).scalar_one_or_none()

    async def usage(self, user_id: str, today: Optional[date] = None) -> UsageResp:
        month = month_key(today)
        row = await self._row(user_id, month)
        used = row.count if row else 0
        remaining = max(self.limit - used, 0) if self.limit > 0 else None
        return UsageResp(month=month, used=used, limit=self.limit, remaining=remaining)

    async def check(self, user_id: str, today: Optional[date] = None) -> None:
        current = await self.usage(user_id, today)
        if current.remaining == 0:
            raise QuotaExceededError()

    async def record(self, user_id: str, today: Optional[date] = None) -> UsageResp:
        month = month_key(today)
        row = await self._row(user_id, month)
        if row is None:
            row = ReflectionUsage(user_id=user_id, month=month, count=0)
            self.db.add(row)
        row.count += 1
        await self.db.commit()
        logger.debug("reflection %d/%d used by %s in %s", row.count, self.limit, user_id, month)
        return await self.usage(user_id, today)
