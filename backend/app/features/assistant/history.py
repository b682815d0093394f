"""
Assistant feature: reading the chat log back.

history() replays a conversation; pulse() summarises a course's questions
for the professor: volume, route mix, escalations and the most repeated
questions.
"""

import logging
import re
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from pydantic import TypeAdapter
from supabase import Client

from app.config import get_settings
from app.core.database import execute_query
from app.core.exceptions import ValidationError
from app.features.assistant.schemas import ChatLogEntry, DailyCount, PulseReport, QuestionCount, Route
from app.features.assistant.service import CHAT_LOG_TABLE

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = "id, message, response, agent, route, citations, escalation_id, created_at"
MAX_HISTORY_LIMIT = 100
TOP_CONFUSIONS = 5
TREND_DAYS = 14
MAX_QUESTION_LENGTH = 80

_AGENT_ROUTES = {"policy": Route.POLICY, "concept": Route.CONCEPT, "escalation": Route.ESCALATE}
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_timestamp = TypeAdapter(datetime)


def normalize_question(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace so repeats group together."""
    cleaned = _WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", text.lower())).strip()
    return cleaned[:MAX_QUESTION_LENGTH]


def _route_of(row: dict) -> Route | None:
    # rows written before the route column existed only carry the agent
    if row.get("route") in Route.__members__:
        return Route(row["route"])
    return _AGENT_ROUTES.get(row.get("agent") or "")


def _created_at(row: dict) -> datetime | None:
    value = row.get("created_at")
    if not value:
        return None
    created = _timestamp.validate_python(value)
    return created if created.tzinfo else created.replace(tzinfo=timezone.utc)


def _entry(row: dict) -> ChatLogEntry:
    return ChatLogEntry(
        **{
            **row,
            "id": str(row["id"]),
            "route": _route_of(row),
            "citations": row.get("citations") or [],
            "escalated": row.get("escalation_id") is not None,
        }
    )


class ChatLogService:

    def __init__(self, db: Client):
        self.db = db

    def history(self, course_id: str, user_id: str | None = None, limit: int = 30) -> list[ChatLogEntry]:
        """The latest `limit` exchanges, oldest first. All users when `user_id` is None."""
        if not course_id:
            raise ValidationError("course_id is required")
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}", detail=f"limit={limit}")

        query = self.db.table(CHAT_LOG_TABLE).select(HISTORY_COLUMNS).eq("course_id", course_id)
        if user_id:
            query = query.eq("user_id", user_id)
        result = execute_query("chat_history", query.order("created_at", desc=True).limit(limit))

        entries = [_entry(row) for row in result.data or []]
        entries.reverse()
        return entries

    def pulse(self, course_id: str, today: date | None = None) -> PulseReport:
        if not course_id:
            raise ValidationError("course_id is required")

        tz = ZoneInfo(get_settings().TIMEZONE)
        today = today or datetime.now(tz).date()

        rows = execute_query(
            "pulse_chat_logs",
            self.db.table(CHAT_LOG_TABLE)
            .select("message, agent, route, escalation_id, created_at")
            .eq("course_id", course_id),
        ).data or []
        pending = execute_query(
            "pulse_pending_escalations",
            self.db.table("escalations").select("id").eq("course_id", course_id).eq("status", "pending"),
        ).data or []

        report = PulseReport(course_id=course_id, total_queries=len(rows), escalations_pending=len(pending))
        questions: Counter[str] = Counter()
        per_day: Counter[date] = Counter()

        for row in rows:
            route = _route_of(row)
            if route is not None:
                report.query_distribution[route.value] += 1
            if row.get("escalation_id") is not None:
                report.escalation_count += 1
            question = normalize_question(row.get("message") or "")
            if question:
                questions[question] += 1
            created = _created_at(row)
            if created is not None:
                per_day[created.astimezone(tz).date()] += 1

        report.queries_today = per_day[today]
        report.top_confusions = [
            QuestionCount(question=question, count=count)
            for question, count in questions.most_common(TOP_CONFUSIONS)
        ]
        first_day = today - timedelta(days=TREND_DAYS - 1)
        report.daily_trends = [
            DailyCount(day=first_day + timedelta(days=offset), count=per_day[first_day + timedelta(days=offset)])
            for offset in range(TREND_DAYS)
        ]

        logger.info(
            f"📊 Pulse for course {course_id}: {report.total_queries} queries, "
            f"{report.escalation_count} escalated, {report.escalations_pending} pending"
        )
        return report
