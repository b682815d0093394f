"""
Knowledge feature: document ingestion pipeline.

extract -> chunk (schedule-aware metadata) -> embed + store.
Either every chunk is stored or the call raises.
"""

import logging
import threading
import time

from app.config import get_settings
from app.core.exceptions import IngestionError, ValidationError
from app.features.announcements.schedules import ScheduleRepository
from app.features.knowledge.chunking import build_chunks
from app.features.knowledge.extraction import extract_pages
from app.features.knowledge.schemas import IngestionResult
from app.features.knowledge.store import RetrievalStore

logger = logging.getLogger(__name__)


class IngestionService:
    """Turns an uploaded course document into stored, searchable chunks."""

    def __init__(self, store: RetrievalStore, schedules: ScheduleRepository):
        self.store = store
        self.schedules = schedules

    def ingest_document(
        self,
        course_id: str,
        file_bytes: bytes,
        filename: str,
        week_number: int | None = None,
        topic: str | None = None,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> IngestionResult:
        """Ingest one document for a course.

        Args:
            course_id: Owning course.
            file_bytes: Raw upload.
            filename: Used for type detection and as the citation source.
            week_number / topic: Explicit metadata, wins over inference.
            cancel_event: Set by the caller to abandon the ingestion; checked
                between phases and by every outstanding write.
            timeout: Budget for the whole call (extraction included), defaults
                to INGESTION_TIMEOUT.

        Raises:
            ValidationError: Empty/unsupported/oversized document, or no chunks.
            IngestionError: Cancelled, out of time, or storage did not confirm
                every chunk.
        """
        if not course_id:
            raise ValidationError("course_id is required")
        if not file_bytes:
            raise ValidationError("Uploaded file is empty")
        if week_number is not None and week_number < 1:
            raise ValidationError("week_number must be >= 1", detail=f"week_number={week_number}")

        timeout = get_settings().INGESTION_TIMEOUT if timeout is None else timeout
        cancel_event = cancel_event or threading.Event()
        deadline = time.monotonic() + timeout
        logger.info(f"🚀 Ingesting {filename} for course {course_id}")

        pages = extract_pages(file_bytes, filename)
        schedule = self.schedules.list_entries(course_id)
        chunks = build_chunks(
            pages,
            course_id=course_id,
            source=filename,
            week_number=week_number,
            topic=topic,
            schedule=schedule,
        )

        remaining = deadline - time.monotonic()
        if cancel_event.is_set():
            raise IngestionError("cancelled", stored=0, total=len(chunks))
        if remaining <= 0:
            raise IngestionError(f"timed out after {timeout}s", stored=0, total=len(chunks))

        stored = self.store.add_chunks(chunks, timeout=remaining, cancel_event=cancel_event)

        policy = sum(1 for c in chunks if c.content_type == "policy")
        logger.info(f"🎉 Ingestion finished for {filename}: {stored} chunks stored")
        return IngestionResult(
            course_id=course_id,
            filename=filename,
            pages=len(pages),
            chunks_created=stored,
            policy_chunks=policy,
            concept_chunks=stored - policy,
        )
