import asyncio
import os
from datetime import datetime, timedelta
from types import SimpleNamespace

os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OPENAI_API_KEY", "test-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from nightnotes.db import Base, get_db
from nightnotes.main import app
from nightnotes.services import auth_service
from nightnotes.services.llm_client import TextGenerator, get_text_generator
from nightnotes.services.store import SessionStore
from nightnotes.services.wizard import CompletedRitual

TEST_SECRET = "test-secret"
USER_ID = "11111111-1111-1111-1111-111111111111"


class FakeGenerator(TextGenerator):
    """Records every prompt; answers from a queue or raises a preset error."""

    def __init__(self, responses=None, error=None):
        super().__init__(client=object())
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    async def complete(self, system_prompt, user_message, *, max_tokens, json_mode=False):
        self.calls.append({
            "system": system_prompt,
            "user": user_message,
            "max_tokens": max_tokens,
            "json_mode": json_mode,
        })
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


def make_ritual(completed_at, before=4, after=2, anchor="Email Sam", **kw):
    completed_at = completed_at if completed_at.tzinfo else completed_at.astimezone()
    return CompletedRitual(
        load_before=before,
        load_after=after,
        open_loops=kw.get("open_loops"),
        emotional_residue=kw.get("emotional_residue"),
        tomorrow_anchor=anchor,
        started_at=completed_at - timedelta(minutes=4),
        completed_at=completed_at,
        duration_seconds=240,
        load_delta=before - after,
    )


def _engine_for(path):
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
async def engine(tmp_path):
    eng = _engine_for(tmp_path / "store.db")
    await _create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_session(engine):
    maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with maker() as session:
        yield session


@pytest.fixture
async def store(db_session):
    s = SessionStore(db_session)
    await s.get_or_create_profile(USER_ID, email="sleeper@example.com")
    return s


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def api_db(tmp_path):
    """File-backed database shared by the app under test and seeding helpers."""
    eng = _engine_for(tmp_path / "api.db")
    asyncio.run(_create_schema(eng))
    maker = async_sessionmaker(eng, expire_on_commit=False, class_=AsyncSession)

    def seed(fn):
        async def _run():
            async with maker() as session:
                return await fn(SessionStore(session))
        return asyncio.run(_run())

    yield SimpleNamespace(maker=maker, seed=seed)
    asyncio.run(eng.dispose())


@pytest.fixture
def client(api_db, fake_generator, monkeypatch):
    monkeypatch.setattr(auth_service, "SECRET_KEY", TEST_SECRET)
    monkeypatch.setattr(auth_service, "CRON_SECRET", "cron-secret")

    async def _get_db():
        async with api_db.maker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_text_generator] = lambda: fake_generator
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    token = auth_service.create_access_token(
        {"sub": USER_ID, "email": "sleeper@example.com"}, secret_key=TEST_SECRET
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cron_headers():
    return {"Authorization": "Bearer cron-secret"}


def days_ago(n, minutes=5):
    return datetime.now() - timedelta(days=n, minutes=minutes)
