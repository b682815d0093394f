"""
Database connections: Supabase client setup.
"""

from functools import lru_cache

from postgrest.exceptions import APIError
from supabase import create_client, Client

from app.config import get_settings
from app.core.exceptions import ConflictError, StorageError

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


@lru_cache
def get_supabase_client() -> Client:
    """Get the Supabase client (singleton), anon key."""
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def get_supabase_admin_client() -> Client:
    """Get the Supabase admin client (service_role key, bypasses RLS).

    Ingestion and the Conductor write on behalf of the course, so they use
    this client when a service key is configured.
    """
    settings = get_settings()
    if not settings.SUPABASE_SERVICE_KEY:
        return get_supabase_client()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)


def is_unique_violation(error: Exception) -> bool:
    """True if a PostgREST error was raised by a UNIQUE constraint."""
    return isinstance(error, APIError) and str(getattr(error, "code", "")) == UNIQUE_VIOLATION


def execute_query(operation: str, query):
    """Run a PostgREST builder, translating failures into app errors.

    Raises:
        ConflictError: A UNIQUE constraint rejected the write.
        StorageError: Anything else went wrong talking to Supabase.
    """
    try:
        return query.execute()
    except APIError as e:
        if is_unique_violation(e):
            raise ConflictError(f"Duplicate record ({operation})", detail=e.message) from e
        raise StorageError(operation, e.message or str(e)) from e
    except Exception as e:
        raise StorageError(operation, str(e)) from e
