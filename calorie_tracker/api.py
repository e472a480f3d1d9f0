# -*- coding: utf-8 -*-
"""
Calorie tracker API

Food nutrition analysis through an LLM, with session-based accounts and search history.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .app_db import DatabaseManager
from .auth.api import router as auth_router
from .auth.session import SQLiteSessionStore, build_session_store, session_middleware
from .config import settings
from .errors import PayloadTooLargeError, error_response, register_error_handlers
from .nutrition.api import router as nutrition_router
from .nutrition.history import SearchHistoryService
from .nutrition.service import NutritionService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    settings.validate_config()
    app.state.db_manager.connect()
    store = app.state.session_store
    if isinstance(store, SQLiteSessionStore):
        purged = store.purge_expired()
        if purged:
            logger.info("Purged %d expired sessions", purged)
    yield
    app.state.db_manager.disconnect()


app = FastAPI(
    lifespan=_lifespan,
    title="Calorie Tracker API",
    description="API for analyzing food nutrition using AI",
    version=settings.version,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.started_at = time.monotonic()
app.state.db_manager = DatabaseManager(settings.app_db_path)
app.state.session_store = build_session_store()
app.state.nutrition_service = NutritionService()
app.state.search_history_service = SearchHistoryService(
    max_per_session=settings.max_search_history_per_session
)


# Ensure the app DB exists even when lifespan events are not triggered (e.g. some test clients).
app.state.db_manager.connect()


# Registered first so it runs inside the body-size guard below.
app.middleware("http")(session_middleware)


@app.middleware("http")
async def _limit_body_size(request: Request, call_next):
    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > settings.max_body_bytes:
        # Exception handlers do not cover middleware.
        exc = PayloadTooLargeError()
        return error_response(exc.message, exc.status)
    return await call_next(request)


register_error_handlers(app)

app.include_router(auth_router)
app.include_router(nutrition_router)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@app.get("/api/health")
def health_check():
    """Liveness probe."""
    return {
        "success": True,
        "status": "OK",
        "timestamp": _utc_now(),
        "uptime": round(time.monotonic() - app.state.started_at, 3),
        "version": settings.version,
        "environment": settings.environment,
        "database": app.state.db_manager.status(),
    }


@app.get("/api/info")
def api_info():
    return {
        "success": True,
        "name": "Calorie Tracker API",
        "version": settings.version,
        "description": "API for analyzing food nutrition using AI",
        "endpoints": {
            "auth": "/api/auth",
            "nutrition": "/api/nutrition",
            "health": "/api/health",
            "documentation": "/api/docs",
        },
        "timestamp": _utc_now(),
    }


def run() -> None:
    """Console entry point (used by pyproject [project.scripts])."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.environ.get("CALORIE_TRACKER_HOST") or os.environ.get("HOST") or "127.0.0.1"
    port_raw = os.environ.get("CALORIE_TRACKER_PORT") or os.environ.get("PORT") or "3001"
    try:
        port = int(port_raw)
    except ValueError:
        port = 3001

    uvicorn.run("calorie_tracker.api:app", host=host, port=port, reload=False)
