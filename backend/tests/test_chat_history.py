"""Unit tests for chat history and the pulse report."""

from datetime import date

import pytest

from app.core.exceptions import ValidationError
from app.features.assistant.history import ChatLogService, normalize_question
from app.features.assistant.schemas import Route
from tests.fakes import COURSE_ID, STUDENT_ID

TODAY = date(2025, 9, 15)


@pytest.fixture
def service(db) -> ChatLogService:
    return ChatLogService(db)


def _log(db, message, created_at, agent="policy", route="POLICY", user_id=STUDENT_ID, escalation_id=None, **fields):
    row = {
        "course_id": COURSE_ID,
        "user_id": user_id,
        "message": message,
        "response": f"Answer to {message}",
        "agent": agent,
        "route": route,
        "citations": [],
        "escalation_id": escalation_id,
        "created_at": created_at,
        **fields,
    }
    return db.seed("chat_logs", **row)


class TestHistory:
    def test_latest_entries_oldest_first(self, db, service):
        for day in (10, 12, 11, 13):
            _log(db, f"Question on day {day}", f"2025-09-{day}T09:00:00+00:00")

        entries = service.history(COURSE_ID, STUDENT_ID, limit=3)

        assert [e.message for e in entries] == ["Question on day 11", "Question on day 12", "Question on day 13"]

    def test_scoped_to_user_unless_omitted(self, db, service):
        _log(db, "Mine", "2025-09-10T09:00:00+00:00")
        _log(db, "Theirs", "2025-09-11T09:00:00+00:00", user_id="someone-else")

        assert [e.message for e in service.history(COURSE_ID, STUDENT_ID)] == ["Mine"]
        assert [e.message for e in service.history(COURSE_ID)] == ["Mine", "Theirs"]

    def test_entry_fields(self, db, service):
        _log(
            db, "Can I get an extension?", "2025-09-10T09:00:00+00:00",
            agent="escalation", route="ESCALATE", escalation_id="esc-1",
            citations=[{"source": "syllabus.pdf", "page": 2, "excerpt": "Late work..."}],
        )

        entry = service.history(COURSE_ID, STUDENT_ID)[0]

        assert entry.escalated
        assert entry.escalation_id == "esc-1"
        assert entry.route == Route.ESCALATE
        assert entry.citations[0].page == 2

    def test_rows_without_route_fall_back_to_agent(self, db, service):
        _log(db, "What is recursion?", "2025-09-10T09:00:00+00:00", agent="concept", route=None)
        assert service.history(COURSE_ID, STUDENT_ID)[0].route == Route.CONCEPT

    @pytest.mark.parametrize("course_id,limit", [("", 10), (COURSE_ID, 0), (COURSE_ID, 101)])
    def test_invalid_arguments(self, service, course_id, limit):
        with pytest.raises(ValidationError):
            service.history(course_id, limit=limit)


class TestPulse:
    def test_counts_routes_escalations_and_days(self, db, service):
        _log(db, "When is the midterm?", "2025-09-15T08:00:00+00:00")
        _log(db, "when is the MIDTERM", "2025-09-15T10:00:00+00:00")
        _log(db, "What is a heap?", "2025-09-14T10:00:00+00:00", agent="concept", route="CONCEPT")
        _log(db, "Family emergency", "2025-09-03T10:00:00+00:00", agent="escalation", route="ESCALATE", escalation_id="esc-1")
        _log(db, "Old question", "2025-08-01T10:00:00+00:00", agent="concept", route=None)
        db.seed("escalations", course_id=COURSE_ID, student_id=STUDENT_ID, query="Family emergency", status="pending")
        db.seed("escalations", course_id=COURSE_ID, student_id=STUDENT_ID, query="Regrade", status="resolved")

        report = service.pulse(COURSE_ID, today=TODAY)

        assert report.total_queries == 5
        assert report.escalation_count == 1
        assert report.escalations_pending == 1
        assert report.queries_today == 2
        assert report.query_distribution == {"POLICY": 2, "CONCEPT": 2, "ESCALATE": 1}
        assert report.top_confusions[0].question == "when is the midterm"
        assert report.top_confusions[0].count == 2

        assert len(report.daily_trends) == 14
        assert report.daily_trends[0].day == date(2025, 9, 2)
        assert report.daily_trends[-1].day == TODAY
        assert report.daily_trends[-1].count == 2
        assert sum(d.count for d in report.daily_trends) == 4

    def test_empty_course(self, service):
        report = service.pulse(COURSE_ID, today=TODAY)
        assert report.total_queries == 0
        assert report.query_distribution == {"POLICY": 0, "CONCEPT": 0, "ESCALATE": 0}
        assert report.top_confusions == []
        assert all(d.count == 0 for d in report.daily_trends)


def test_normalize_question():
    assert normalize_question("  What's   the LATE policy?? ") == "what s the late policy"
    assert len(normalize_question("why " * 50)) == 80
