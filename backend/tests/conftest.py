"""Shared fixtures. Environment is set before any app module reads settings."""

import os

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("LLM_API_KEY", "test-llm-key")
os.environ["CONDUCTOR_ENABLED"] = "false"
os.environ["DEMO_MODE"] = "false"

import pytest  # noqa: E402

from app.core.cache import LookupCache  # noqa: E402
from app.features.announcements.schedules import ScheduleRepository  # noqa: E402
from app.features.announcements.service import AnnouncementService  # noqa: E402
from app.features.escalations.service import EscalationService  # noqa: E402
from app.features.knowledge.store import RetrievalStore  # noqa: E402
from tests.fakes import COURSE_ID, PROFESSOR_ID, FakeEmbedder, FakeGenerator, FakeSupabase  # noqa: E402


@pytest.fixture
def db() -> FakeSupabase:
    fake = FakeSupabase()
    fake.seed("courses", id=COURSE_ID, name="CS 101", professor_id=PROFESSOR_ID)
    return fake


@pytest.fixture
def cache() -> LookupCache:
    return LookupCache(maxsize=10, ttl_seconds=60)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def store(db, embedder) -> RetrievalStore:
    return RetrievalStore(db, embedder, batch_size=2, workers=2, search_timeout=2.0)


@pytest.fixture
def schedules(db, cache) -> ScheduleRepository:
    return ScheduleRepository(db, cache)


@pytest.fixture
def announcements(db) -> AnnouncementService:
    return AnnouncementService(db)


@pytest.fixture
def escalations(db, store) -> EscalationService:
    return EscalationService(db, store=store, generator=FakeGenerator("Happy to help."))
