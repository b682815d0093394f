"""Unit tests for the document ingestion pipeline."""

import threading
import time
from datetime import date

import pytest

from app.config import get_settings
from app.core.exceptions import IngestionError, ValidationError
from app.features.announcements.schemas import ScheduleEntry
from app.features.knowledge.service import IngestionService
from tests.fakes import COURSE_ID

SYLLABUS = """CS 101 Syllabus

Grading Policy. Homework is 40% of the grade, exams are 60%. Late submissions lose 10% per day after the deadline.

Week 3: Binary Search Trees
A binary search tree keeps keys ordered so search runs in logarithmic time on balanced trees. We explain the algorithm with an example.
"""

INTRO_SYLLABUS = """Week 1: Introduction

This course introduces programming with Python. We meet twice a week and build small projects together, starting with variables and control flow before moving on to functions and modules.

Late Submission Policy. Assignments submitted after the deadline lose 10% per day. Work more than three days late is not accepted without an approved extension.

Recursion is a technique where a function calls itself. For example, computing a factorial is a classic algorithm used to explain the concept of a base case and a recursive step.
"""

@pytest.fixture
def service(store, schedules) -> IngestionService:
    return IngestionService(store, schedules)


def test_ingests_text_document(db, service):
    result = service.ingest_document(COURSE_ID, SYLLABUS.encode(), "syllabus.md")

    rows = db.rows("course_content")
    assert result.chunks_created == len(rows) >= 1
    assert result.policy_chunks + result.concept_chunks == result.chunks_created
    assert result.pages == 1
    assert all(row["course_id"] == COURSE_ID for row in rows)
    assert all(row["metadata"]["source"] == "syllabus.md" for row in rows)


def test_explicit_week_and_topic_apply_to_every_chunk(db, service):
    service.ingest_document(COURSE_ID, SYLLABUS.encode(), "syllabus.md", week_number=2, topic="Sorting")
    rows = db.rows("course_content")
    assert {(row["week_number"], row["topic"]) for row in rows} == {(2, "Sorting")}


def test_schedule_topics_tag_chunks(db, schedules, service):
    schedules.upsert_entries(COURSE_ID, [ScheduleEntry(week_number=3, topic="Binary Search Trees", due_date=date(2025, 9, 19))])
    text = "Binary search trees store keys in order.\n\nEach node has two children."

    service.ingest_document(COURSE_ID, text.encode(), "notes.txt")

    row = db.rows("course_content")[0]
    assert (row["week_number"], row["topic"]) == (3, "Binary Search Trees")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"course_id": "", "file_bytes": b"text", "filename": "a.txt"},
        {"course_id": COURSE_ID, "file_bytes": b"", "filename": "a.txt"},
        {"course_id": COURSE_ID, "file_bytes": b"text", "filename": "a.txt", "week_number": 0},
        {"course_id": COURSE_ID, "file_bytes": b"text", "filename": "a.exe"},
        {"course_id": COURSE_ID, "file_bytes": b"  \n\n ", "filename": "blank.txt"},
    ],
)
def test_rejects_bad_input(db, service, kwargs):
    with pytest.raises(ValidationError):
        service.ingest_document(**kwargs)
    assert db.rows("course_content") == []


def test_storage_failure_is_not_reported_as_success(db, service):
    db.fail_next("insert", "course_content", times=10)
    with pytest.raises(IngestionError):
        service.ingest_document(COURSE_ID, SYLLABUS.encode(), "syllabus.md")


def test_intro_syllabus_yields_policy_chunk_for_week_one(db, service, monkeypatch):
    monkeypatch.setattr(get_settings(), "CHUNK_SIZE", 300)
    monkeypatch.setattr(get_settings(), "CHUNK_OVERLAP", 50)

    result = service.ingest_document(COURSE_ID, INTRO_SYLLABUS.encode(), "syllabus.txt")

    rows = db.rows("course_content")
    assert result.chunks_created == len(rows) >= 2
    assert result.policy_chunks >= 1
    late = [row for row in rows if "late submission policy" in row["content"].lower()]
    assert late and all(row["content_type"] == "policy" for row in late)
    assert any(row["week_number"] == 1 for row in rows)


def test_slow_preparation_counts_against_the_deadline(db, schedules, service, monkeypatch):
    def slow_schedule(course_id):
        time.sleep(0.2)
        return []

    monkeypatch.setattr(schedules, "list_entries", slow_schedule)

    with pytest.raises(IngestionError, match="timed out") as exc_info:
        service.ingest_document(COURSE_ID, SYLLABUS.encode(), "syllabus.md", timeout=0.1)

    assert exc_info.value.stored == 0
    assert exc_info.value.total >= 1
    assert db.rows("course_content") == []


def test_cancel_before_storing_writes_nothing(db, schedules, service, monkeypatch):
    cancel = threading.Event()

    def cancel_while_loading(course_id):
        cancel.set()
        return []

    monkeypatch.setattr(schedules, "list_entries", cancel_while_loading)

    with pytest.raises(IngestionError, match="cancelled"):
        service.ingest_document(COURSE_ID, SYLLABUS.encode(), "syllabus.md", cancel_event=cancel)

    assert db.rows("course_content") == []
