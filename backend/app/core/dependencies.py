"""
FastAPI dependency injection functions.

Caller identity comes from the upstream gateway as X-User-Id / X-User-Role
headers; this service does not authenticate users itself.
"""

from typing import Literal

from fastapi import Depends, Header, HTTPException, Request, status
from pydantic import BaseModel
from supabase import Client

from app.config import get_settings
from app.core.cache import LookupCache
from app.core.database import get_supabase_admin_client
from app.core.exceptions import PermissionDeniedError, app_error_to_http
from app.core.llm_provider import Embedder, TextGenerator
from app.features.announcements.conductor import Conductor
from app.features.announcements.schedules import ScheduleRepository
from app.features.announcements.service import AnnouncementService
from app.features.assistant.agents import ConceptAgent, PolicyAgent
from app.features.assistant.classifier import QueryClassifier
from app.features.assistant.history import ChatLogService
from app.features.assistant.service import ChatService
from app.features.escalations.service import EscalationService
from app.features.knowledge.service import IngestionService
from app.features.knowledge.store import RetrievalStore


class Caller(BaseModel):
    user_id: str
    role: Literal["student", "professor"]


def get_db() -> Client:
    """Dependency: get Supabase client."""
    return get_supabase_admin_client()


async def get_caller(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default="student"),
) -> Caller:
    """Dependency: identity forwarded by the gateway.

    Raises:
        HTTPException 401: No user id header.
        HTTPException 400: Unknown role.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    role = x_user_role.strip().lower()
    if role not in ("student", "professor"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role: {x_user_role}",
        )
    return Caller(user_id=x_user_id, role=role)


async def require_professor(caller: Caller = Depends(get_caller)) -> Caller:
    if caller.role != "professor":
        raise app_error_to_http(PermissionDeniedError())
    return caller


# ── Shared resources (created in the app lifespan) ───────

def get_cache(request: Request) -> LookupCache:
    cache = getattr(request.app.state, "lookup_cache", None)
    if cache is None:
        settings = get_settings()
        cache = LookupCache(
            maxsize=settings.SCHEDULE_CACHE_MAXSIZE,
            ttl_seconds=settings.SCHEDULE_CACHE_TTL_SECONDS,
        )
        request.app.state.lookup_cache = cache
    return cache


def get_text_generator(request: Request) -> TextGenerator:
    generator = getattr(request.app.state, "text_generator", None)
    if generator is None:
        generator = request.app.state.text_generator = TextGenerator()
    return generator


def get_router_generator(request: Request) -> TextGenerator:
    generator = getattr(request.app.state, "router_generator", None)
    if generator is None:
        generator = TextGenerator(temperature=get_settings().ROUTER_TEMPERATURE)
        request.app.state.router_generator = generator
    return generator


def get_embedder(request: Request) -> Embedder:
    embedder = getattr(request.app.state, "embedder", None)
    if embedder is None:
        embedder = request.app.state.embedder = Embedder()
    return embedder


# ── Services ─────────────────────────────────────────────

def get_retrieval_store(
    db: Client = Depends(get_db),
    embedder: Embedder = Depends(get_embedder),
) -> RetrievalStore:
    return RetrievalStore(db, embedder)


def get_schedule_repository(
    db: Client = Depends(get_db),
    cache: LookupCache = Depends(get_cache),
) -> ScheduleRepository:
    return ScheduleRepository(db, cache)


def get_ingestion_service(
    store: RetrievalStore = Depends(get_retrieval_store),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
) -> IngestionService:
    return IngestionService(store, schedules)


def get_escalation_service(
    db: Client = Depends(get_db),
    store: RetrievalStore = Depends(get_retrieval_store),
    generator: TextGenerator = Depends(get_text_generator),
) -> EscalationService:
    return EscalationService(db, store=store, generator=generator)


def get_chat_service(
    db: Client = Depends(get_db),
    store: RetrievalStore = Depends(get_retrieval_store),
    generator: TextGenerator = Depends(get_text_generator),
    router_generator: TextGenerator = Depends(get_router_generator),
    escalations: EscalationService = Depends(get_escalation_service),
) -> ChatService:
    return ChatService(
        db,
        classifier=QueryClassifier(router_generator),
        policy_agent=PolicyAgent(store, generator),
        concept_agent=ConceptAgent(store, generator),
        escalations=escalations,
    )


def get_chat_log_service(db: Client = Depends(get_db)) -> ChatLogService:
    return ChatLogService(db)


def get_announcement_service(db: Client = Depends(get_db)) -> AnnouncementService:
    return AnnouncementService(db)


def get_conductor(
    db: Client = Depends(get_db),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
    announcements: AnnouncementService = Depends(get_announcement_service),
    generator: TextGenerator = Depends(get_text_generator),
) -> Conductor:
    return Conductor(db, schedules, announcements, generator)
