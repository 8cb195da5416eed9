import os
from dotenv import load_dotenv

load_dotenv()

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

ASYNC_DB_URL = os.getenv("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./nightnotes.db")

class Base(DeclarativeBase):
    pass

engine = create_async_engine(ASYNC_DB_URL, echo=False, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_db():
    async with SessionLocal() as session:
        yield session

async def init_db():
    # dev only; production schemas are managed outside this service
    if os.getenv("RUN_DB_CREATE_ALL") == "1":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
