"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from progress_tracker.config import settings
from progress_tracker.core.errors import ProgressError
from progress_tracker.api import (
    health_router,
    progress_router,
    student_router,
    assignments_router,
    alerts_router,
    preferences_router,
)
from progress_tracker.db.session import init_db
from progress_tracker.schemas.common import ErrorResponse
from progress_tracker.services.metric_cache import build_metric_cache

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Progress tracker starting (env: %s, cache backend: %s)",
        settings.ENV,
        settings.PROGRESS_CACHE_BACKEND,
    )
    if settings.AUTO_CREATE_TABLES:
        init_db()
    yield
    logger.info("Progress tracker shut down")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Progress Tracker API",
        description="Student progress aggregation, metric caching and accuracy alerts",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.metric_cache = build_metric_cache()

    # ── Middleware ─────────────────────────────────────────────────────────

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

    # ── Errors ─────────────────────────────────────────────────────────────

    @app.exception_handler(ProgressError)
    async def progress_error_handler(request: Request, exc: ProgressError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(detail=exc.message).model_dump(),
        )

    # ── Routers ────────────────────────────────────────────────────────────

    app.include_router(health_router, tags=["Health"])
    app.include_router(progress_router, prefix="/api/teacher/progress", tags=["Progress"])
    app.include_router(student_router, prefix="/api/student", tags=["Student"])
    app.include_router(assignments_router, prefix="/api/teacher/assignments", tags=["Assignments"])
    app.include_router(alerts_router, prefix="/api/teacher/alerts", tags=["Alerts"])
    app.include_router(preferences_router, prefix="/api/teacher/preferences", tags=["Preferences"])

    @app.get("/")
    async def root():
        return {
            "name": "Progress Tracker API",
            "version": "0.1.0",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
