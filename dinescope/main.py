"""
DineScope API — FastAPI application entry point.
Lifespan: create DB tables → verify connectivity.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dinescope.config import settings
from dinescope.database import check_db_connectivity, engine
from dinescope.models import Base
from dinescope.routers import health, monitoring, restaurants, search

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan handler.
    1. Create all tables (idempotent — IF NOT EXISTS).
    2. Verify DB connectivity.
    """
    logger.info("Starting DineScope API (env=%s)", settings.app_env)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified.")

    if await check_db_connectivity():
        logger.info("Database connectivity verified.")
    else:
        logger.error("Database connectivity check FAILED at startup.")

    yield

    logger.info("Shutting down DineScope API.")
    await engine.dispose()


app = FastAPI(
    title="DineScope API",
    description="Natural-language restaurant search ranked by review-derived features.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(search.router)
app.include_router(restaurants.router)
app.include_router(monitoring.router)


# ── Global exception handler ─────────────────────────────────────────────────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a machine-readable error for any unhandled exception."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
