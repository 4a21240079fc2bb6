"""
invitetrail.api.main — FastAPI application entry point
=======================================================

Run with::

    uvicorn invitetrail.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from invitetrail.api.deps import EngineDep, get_engine  # noqa: E402
from invitetrail.api.routes.invites import router as invites_router  # noqa: E402
from invitetrail.api.routes.settings import router as settings_router  # noqa: E402
from invitetrail.database.engine import database_available  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Allowed CORS origins: CORS_ALLOW_ORIGINS (comma-separated), else FRONTEND_URL."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warm the DB engine on startup."""
    engine = get_engine()
    logger.info("InviteTrail API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("InviteTrail API shutting down")


app = FastAPI(
    title="InviteTrail API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(invites_router, prefix="/api")
app.include_router(settings_router, prefix="/api")


@app.get("/api/health")
def health(engine: EngineDep):
    if not database_available(engine):
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "database": "unavailable"},
        )
    return {"status": "ok", "database": "ok"}
