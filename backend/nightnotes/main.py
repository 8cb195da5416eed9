# /backend/nightnotes/main.py

from __future__ import annotations
import os
import logging
from dotenv import load_dotenv
load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from nightnotes.config import CORS_ORIGINS, LOG_LEVEL
from nightnotes.db import init_db
from nightnotes.errors import NightNotesError
from nightnotes.services.llm_client import TextGenerator
from nightnotes.api.routers import rituals, checkins, insights, analysis, reflect, profile

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    app.state.text_generator = TextGenerator()
    yield


app = FastAPI(
    title="Night Notes API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NightNotesError)
async def night_notes_error_handler(request: Request, exc: NightNotesError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


app.include_router(rituals.router)
app.include_router(checkins.router)
app.include_router(insights.router)
app.include_router(analysis.router)
app.include_router(reflect.router)
app.include_router(profile.router)


@app.get("/health")
async def health():
    return {"ok": True}
