"""
Course Assistant - FastAPI Application Entry Point.

Feature-based modular architecture:
  Each feature in app/features/ has its own router, service, and schemas.
  knowledge      document ingestion and retrieval
  assistant      question routing, answer agents, chat history and pulse report
  escalations    questions handed to the professor
  announcements  weekly drafts (Conductor) and schedules
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.background.scheduler import init_scheduler, shutdown_scheduler
from app.config import get_settings
from app.core.cache import LookupCache
from app.core.exceptions import AppBaseError, app_error_to_http

# ── Feature Routers ──────────────────────────────────────
from app.features.announcements.router import conductor_router, router as announcements_router
from app.features.assistant.router import pulse_router, router as assistant_router
from app.features.escalations.router import router as escalations_router
from app.features.knowledge.router import router as knowledge_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup & shutdown."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(f"🚀 {settings.APP_NAME} v{settings.APP_VERSION} starting...")
    logger.info(f"🤖 LLM Provider: {settings.LLM_PROVIDER} ({settings.LLM_MODEL})")
    logger.info(f"🔗 Supabase: {settings.SUPABASE_URL[:40]}...")

    app.state.lookup_cache = LookupCache(
        maxsize=settings.SCHEDULE_CACHE_MAXSIZE,
        ttl_seconds=settings.SCHEDULE_CACHE_TTL_SECONDS,
    )
    init_scheduler(app.state.lookup_cache)
    yield
    shutdown_scheduler()
    app.state.lookup_cache.clear()
    logger.info("👋 Shutting down...")


async def app_error_handler(request: Request, exc: AppBaseError) -> JSONResponse:
    http_error = app_error_to_http(exc)
    if http_error.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message} ({exc.detail})")
    return JSONResponse(status_code=http_error.status_code, content={"detail": http_error.detail})


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Course Q&A assistant with escalation and weekly announcements",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppBaseError, app_error_handler)

    # ── Register Feature Routers ─────────────────────────
    app.include_router(knowledge_router, prefix="/api/knowledge", tags=["Knowledge"])
    app.include_router(assistant_router, prefix="/api/chat", tags=["Chat"])
    app.include_router(pulse_router, prefix="/api/pulse", tags=["Pulse"])
    app.include_router(escalations_router, prefix="/api/escalations", tags=["Escalations"])
    app.include_router(announcements_router, prefix="/api/announcements", tags=["Announcements"])
    app.include_router(conductor_router, prefix="/api/conductor", tags=["Conductor"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()
