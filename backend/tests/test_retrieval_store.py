"""Unit tests for the retrieval store (batched writes and course-scoped search)."""

import threading
import time

import pytest

from app.core.exceptions import IngestionError, UpstreamError, ValidationError
from app.features.knowledge.schemas import Chunk
from app.features.knowledge.store import MATCH_FUNCTION, RetrievalStore
from tests.fakes import COURSE_ID, FakeEmbedder, seed_chunk


def _chunks(count: int, content_type: str = "policy") -> list[Chunk]:
    return [
        Chunk(
            content=f"Chunk {i} about late submission penalties and deadlines.",
            course_id=COURSE_ID,
            page_number=1,
            content_type=content_type,
            metadata={"chunk_index": i, "source": "syllabus.pdf"},
        )
        for i in range(count)
    ]


class TestAddChunks:
    def test_stores_all_chunks_in_batches(self, db, embedder, store):
        stored = store.add_chunks(_chunks(5))

        assert stored == 5
        assert embedder.document_calls == 3
        rows = db.rows("course_content")
        assert len(rows) == 5
        assert all(row["embedding"] for row in rows)
        assert sorted(row["metadata"]["chunk_index"] for row in rows) == [0, 1, 2, 3, 4]

    def test_empty_input_rejected(self, store):
        with pytest.raises(ValidationError):
            store.add_chunks([])

    def test_failed_batch_reports_partial_write(self, db, store):
        db.fail_next("insert", "course_content")

        with pytest.raises(IngestionError) as exc_info:
            store.add_chunks(_chunks(5))

        error = exc_info.value
        assert error.reason == "batch write failed"
        assert error.total == 5
        assert error.stored < 5
        assert error.stored + error.unconfirmed <= 5
        assert f"{error.stored}/5 chunks stored" in error.detail

    def test_timeout_abandons_in_flight_batches(self, db):
        store = RetrievalStore(db, FakeEmbedder(delay=0.5), batch_size=2, workers=2)

        with pytest.raises(IngestionError) as exc_info:
            store.add_chunks(_chunks(5), timeout=0.1)

        error = exc_info.value
        assert error.reason.startswith("timed out")
        assert error.stored == 0
        assert error.unconfirmed == 4

        time.sleep(0.7)
        assert db.rows("course_content") == []

    def test_cancel_stops_outstanding_writes(self, db):
        store = RetrievalStore(db, FakeEmbedder(delay=0.3), batch_size=2, workers=2)
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(IngestionError) as exc_info:
            store.add_chunks(_chunks(4), cancel_event=cancel)

        assert exc_info.value.reason == "cancelled"
        assert exc_info.value.stored == 0

        time.sleep(0.5)
        assert db.rows("course_content") == []


class TestSearch:
    QUESTION = "What is the late submission penalty?"

    def test_returns_best_matches_first(self, db, embedder, store):
        seed_chunk(db, embedder, "Late submissions lose 10% per day.", embed_as=self.QUESTION)
        seed_chunk(db, embedder, "Office hours are Mondays in room 204.")

        results = store.search(self.QUESTION, COURSE_ID, k=1)

        assert len(results) == 1
        assert results[0].content == "Late submissions lose 10% per day."
        assert results[0].score == pytest.approx(1.0)
        name, params = db.rpc_calls[0]
        assert name == MATCH_FUNCTION
        assert params["match_count"] == 2
        assert params["match_course_id"] == COURSE_ID

    def test_min_score_filters(self, db, embedder, store):
        seed_chunk(db, embedder, "Office hours are Mondays in room 204.")
        assert store.search(self.QUESTION, COURSE_ID, k=5, min_score=0.7) == []

    def test_scoped_to_course_and_type(self, db, embedder, store):
        seed_chunk(db, embedder, "Other course content.", embed_as=self.QUESTION, course_id="other-course")
        seed_chunk(db, embedder, "Concept content.", embed_as=self.QUESTION, content_type="concept")

        assert store.search(self.QUESTION, COURSE_ID, content_type="policy") == []
        results = store.search(self.QUESTION, COURSE_ID)
        assert [r.content for r in results] == ["Concept content."]

    @pytest.mark.parametrize("query,course_id,k", [("", COURSE_ID, 5), ("q", "", 5), ("q", COURSE_ID, 0)])
    def test_invalid_arguments(self, store, query, course_id, k):
        with pytest.raises(ValidationError):
            store.search(query, course_id, k=k)

    def test_storage_failure_is_upstream_error(self, db, store):
        db.fail_next("rpc", MATCH_FUNCTION)
        with pytest.raises(UpstreamError):
            store.search(self.QUESTION, COURSE_ID)

    def test_course_id_case_does_not_matter(self, db, embedder, store):
        course_id = "abcdef01-2345-4678-9abc-def012345678"
        seed_chunk(db, embedder, "Late submissions lose 10% per day.", embed_as=self.QUESTION, course_id=course_id)

        results = store.search(self.QUESTION, course_id.upper())

        assert [r.course_id for r in results] == [course_id]
