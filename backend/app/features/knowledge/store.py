"""
Knowledge feature: course-scoped vector store on Supabase pgvector.

Writes are per batch: each batch of chunks is embedded and then inserted
with a single INSERT statement, so a batch either lands completely or not at
all. Batches run concurrently on a per-call worker pool. If any batch fails,
times out, or is cancelled, the call raises IngestionError carrying how many
chunks were confirmed stored.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Sequence

from supabase import Client

from app.config import get_settings
from app.core.concurrency import run_with_timeout
from app.core.database import execute_query
from app.core.exceptions import IngestionError, ValidationError
from app.core.llm_provider import Embedder
from app.features.knowledge.schemas import Chunk, ContentType, RetrievedChunk

logger = logging.getLogger(__name__)

TABLE = "course_content"
MATCH_FUNCTION = "match_course_content"

# How often the write loop wakes up to check the deadline and cancel flag
_POLL_INTERVAL = 0.2


class _BatchCancelled(Exception):
    pass


class RetrievalStore:
    """Persist chunks with embeddings and answer nearest-neighbour queries."""

    def __init__(
        self,
        db: Client,
        embedder: Embedder,
        batch_size: int | None = None,
        workers: int | None = None,
        search_timeout: float | None = None,
    ):
        settings = get_settings()
        self.db = db
        self.embedder = embedder
        self.batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
        self.workers = workers or settings.INGESTION_WORKERS
        self.search_timeout = settings.RETRIEVAL_TIMEOUT if search_timeout is None else search_timeout

    # ── Write ────────────────────────────────────────────

    def _write_batch(self, batch: Sequence[Chunk], stop: threading.Event) -> int:
        if stop.is_set():
            raise _BatchCancelled()

        vectors = self.embedder.embed_documents([chunk.content for chunk in batch])

        if stop.is_set():
            raise _BatchCancelled()

        rows = [
            {
                "course_id": chunk.course_id,
                "content": chunk.content,
                "page_number": chunk.page_number,
                "week_number": chunk.week_number,
                "topic": chunk.topic,
                "content_type": chunk.content_type,
                "embedding": vector,
                "metadata": chunk.metadata,
            }
            for chunk, vector in zip(batch, vectors)
        ]
        execute_query("insert_chunks", self.db.table(TABLE).insert(rows))
        return len(rows)

    def add_chunks(
        self,
        chunks: Sequence[Chunk],
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> int:
        """Embed and store chunks. Returns the number stored (always all of them).

        Raises:
            ValidationError: No chunks given.
            IngestionError: Any batch failed, timed out or was cancelled.
        """
        if not chunks:
            raise ValidationError("No chunks to store")

        settings = get_settings()
        timeout = settings.INGESTION_TIMEOUT if timeout is None else timeout
        cancel_event = cancel_event or threading.Event()
        stop = threading.Event()
        deadline = time.monotonic() + timeout

        batches = [chunks[i:i + self.batch_size] for i in range(0, len(chunks), self.batch_size)]
        total = len(chunks)
        stored = 0
        errors: list[str] = []
        reason = None

        executor = ThreadPoolExecutor(
            max_workers=min(self.workers, len(batches)),
            thread_name_prefix="ingest_batch",
        )
        futures: dict[Future, Sequence[Chunk]] = {
            executor.submit(self._write_batch, batch, stop): batch for batch in batches
        }
        pending = set(futures)
        logger.info(f"🔄 Storing {total} chunks in {len(batches)} batch(es)")

        try:
            while pending:
                if cancel_event.is_set():
                    reason = "cancelled"
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    reason = f"timed out after {timeout}s"
                    break

                done, pending = wait(pending, timeout=min(_POLL_INTERVAL, remaining), return_when=FIRST_COMPLETED)
                for future in done:
                    try:
                        stored += future.result()
                    except _BatchCancelled:
                        reason = reason or "cancelled"
                    except Exception as e:
                        errors.append(str(e))
                        logger.error(f"❌ Chunk batch failed: {e}")
                if errors:
                    reason = "batch write failed"
                    break
        finally:
            # workers still queued or mid-embedding bail out before inserting
            stop.set()
            unconfirmed = 0
            for future in pending:
                if future.cancel():
                    continue
                if not future.done():
                    unconfirmed += len(futures[future])
                elif future.exception() is None:
                    stored += future.result()
            executor.shutdown(wait=False, cancel_futures=True)

        if reason or errors or stored != total:
            reason = reason or "incomplete write"
            logger.error(
                f"❌ Chunk write incomplete ({reason}): {stored}/{total} stored, "
                f"{unconfirmed} unconfirmed"
            )
            error = IngestionError(reason, stored=stored, total=total, unconfirmed=unconfirmed)
            if errors:
                error.detail = f"{error.detail}; {errors[0]}"
            raise error

        logger.info(f"✅ Stored {stored} chunks")
        return stored

    # ── Read ─────────────────────────────────────────────

    def search(
        self,
        query: str,
        course_id: str,
        k: int = 5,
        min_score: float | None = None,
        content_type: ContentType | None = None,
    ) -> list[RetrievedChunk]:
        """Return up to k chunks of the course most similar to `query`.

        Asks the database for 2k candidates so the `min_score` cut still
        leaves enough to fill k.
        """
        if not query or not query.strip():
            raise ValidationError("Query must be a non-empty string")
        if not course_id:
            raise ValidationError("course_id is required")
        if k < 1:
            raise ValidationError("k must be at least 1", detail=f"k={k}")

        vector = self.embedder.embed_query(query)
        params = {
            "query_embedding": vector,
            "match_course_id": course_id,
            "match_count": k * 2,
            "filter_content_type": content_type,
        }
        result = run_with_timeout(
            "storage:search",
            lambda: execute_query("search_chunks", self.db.rpc(MATCH_FUNCTION, params)),
            self.search_timeout,
        )

        wanted = course_id.lower()
        matches = []
        for row in result.data or []:
            if str(row.get("course_id", "")).lower() != wanted:
                continue
            score = float(row.get("similarity", 0.0))
            if min_score is not None and score < min_score:
                continue
            matches.append(RetrievedChunk(
                id=str(row["id"]),
                content=row["content"],
                course_id=row["course_id"],
                page_number=row.get("page_number"),
                week_number=row.get("week_number"),
                topic=row.get("topic"),
                content_type=row["content_type"],
                metadata=row.get("metadata") or {},
                score=score,
            ))

        matches.sort(key=lambda c: c.score, reverse=True)
        return matches[:k]
