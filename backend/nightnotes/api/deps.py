from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nightnotes.db import get_db
from nightnotes.services.store import SessionStore
from nightnotes.services.usage import ReflectionUsageCounter


async def get_store(db: AsyncSession = Depends(get_db)) -> SessionStore:
    return SessionStore(db)


async def get_usage_counter(db: AsyncSession = Depends(get_db)) -> ReflectionUsageCounter:
    return ReflectionUsageCounter(db)
