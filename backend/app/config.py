"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from datetime import date
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "course-assistant"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    # ── Supabase ─────────────────────────────────────────
    SUPABASE_URL: str
    SUPABASE_KEY: str  # anon/public key
    SUPABASE_SERVICE_KEY: str = ""  # service_role key (ingestion, conductor)

    # ── LLM (Provider-Agnostic) ──────────────────────────
    LLM_PROVIDER: str = "gemini"  # gemini | openai | groq
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_API_KEY: str = ""
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_RETRIES: int = 2
    ROUTER_TEMPERATURE: float = 0.0  # classification wants stable labels

    # ── Embedding ────────────────────────────────────────
    EMBEDDING_PROVIDER: str = "gemini"
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    EMBEDDING_DIMENSIONS: int = 768

    # ── Chunking / Upload limits ─────────────────────────
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200
    MAX_CHUNKS_PER_UPLOAD: int = 200
    MAX_CHARACTERS_PER_UPLOAD: int = 500_000
    MAX_UPLOAD_MB: int = 10

    # ── Retrieval ────────────────────────────────────────
    RETRIEVAL_TOP_K: int = 5
    QA_SIMILARITY_THRESHOLD: float = 0.7
    SUGGESTION_SIMILARITY_THRESHOLD: float = 0.5  # drafts accept partial context
    SUGGESTION_TOP_K: int = 3
    EMBEDDING_BATCH_SIZE: int = 50
    INGESTION_WORKERS: int = 4

    # ── Time budgets (seconds) ───────────────────────────
    RETRIEVAL_TIMEOUT: float = 8.0
    GENERATION_TIMEOUT: float = 30.0
    INGESTION_TIMEOUT: float = 60.0

    # ── Conductor (weekly announcements) ─────────────────
    TERM_START_DATE: date | None = None  # None → August 20 of the current year
    DEMO_MODE: bool = False
    DEMO_WEEK: int = 4
    CONDUCTOR_ENABLED: bool = True
    CONDUCTOR_DAY_OF_WEEK: str = "sun"
    CONDUCTOR_HOUR: int = 20
    CONDUCTOR_MINUTE: int = 0
    TIMEZONE: str = "UTC"

    # ── Caching ──────────────────────────────────────────
    SCHEDULE_CACHE_TTL_SECONDS: int = 60
    SCHEDULE_CACHE_MAXSIZE: int = 100

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @field_validator("DEMO_WEEK", mode="before")
    @classmethod
    def _default_demo_week(cls, value):
        try:
            week = int(value)
        except (TypeError, ValueError):
            return 4
        return week if week >= 1 else 4


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton)."""
    return Settings()
