"""FX Journal, FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from fxjournal.api import analytics, trades
from fxjournal.config import settings
from fxjournal.database import engine
from fxjournal.services.store import CONSTRAINT_VIOLATION, StoreError

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

VERSION = "0.3.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check the journal database is reachable before serving; release the pool on exit."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Journal database unreachable: %s", e)
        raise
    logger.info(
        "FX Journal %s ready (calendar=%s, import policy=%s)",
        VERSION, settings.calendar_timezone, settings.import_timezone_policy,
    )
    yield
    await engine.dispose()
    logger.info("Journal database pool closed")


app = FastAPI(
    title="FX Journal",
    description="Forex trading journal: Hirose CSV import, per-period rollups and analytics",
    version=VERSION,
    lifespan=lifespan,
)

# CORS: restrict in production, allow localhost in development
_allowed_origins = (
    ["http://localhost:8000", "http://localhost:3000"]
    if settings.app_env == "development"
    else settings.allowed_hosts.split(",")
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "X-API-Key", "X-User-Id"],
)

app.include_router(trades.router)
app.include_router(analytics.router)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store failure on %s %s: [%s] %s", request.method, request.url.path, exc.code, exc)
    status = 409 if exc.code == CONSTRAINT_VIOLATION else 500
    return JSONResponse(status_code=status, content={"detail": "Storage error", "code": exc.code})


@app.get("/api")
async def api_root():
    return {
        "name": "FX Journal",
        "version": VERSION,
        "status": "running",
        "calendar_timezone": settings.calendar_timezone,
    }


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}
