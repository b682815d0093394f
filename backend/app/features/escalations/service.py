"""
Escalations feature: lifecycle of questions routed to the professor.

    create -> pending
    respond -> pending (response attached) or resolved
    resolve -> resolved (resolved_at stamped)
    reopen  -> pending (resolved_at cleared)

resolved_at is set exactly when status is "resolved".
"""

import logging
from datetime import datetime, timezone

from supabase import Client

from app.config import get_settings
from app.core.database import execute_query
from app.core.exceptions import NotFoundError, UpstreamError, ValidationError
from app.core.llm_provider import TextGenerator
from app.features.assistant.agents import build_context
from app.features.escalations.categorizer import ALL_CATEGORIES, OTHER, categorize_escalation
from app.features.escalations.schemas import EscalationResult, SuggestionResponse
from app.features.knowledge.store import RetrievalStore

logger = logging.getLogger(__name__)

TABLE = "escalations"
STATUSES = ("pending", "resolved")

SUGGESTION_SYSTEM_PROMPT = """You are a helpful professor assistant. Generate a professional, empathetic, and appropriate response to a student's escalation query.

This is a course-related query. Use the course context, when provided, to read the question in the course's domain (for example "trees" in a programming course means data structures).

Guidelines:
- Be professional and warm
- Address the student's concern directly
- Extension request: acknowledge their situation and give clear next steps
- Grade dispute: offer to review and give a timeline
- Personal issue: express empathy and offer support
- Technical problem: give troubleshooting steps or offer to help
- Concept question: reference the course materials when relevant
- Keep it concise (2-4 sentences)
- End with an offer to discuss further

Category: {category}"""

SUGGESTION_PROMPT_TEMPLATE = """Student Query: "{query}"{context_section}

Generate a professional professor response to this student escalation."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def acknowledgement_message(escalation_id: str) -> str:
    return (
        "Your question has been escalated to the professor for review. "
        f"They will respond to you directly. Reference ID: {escalation_id[:8]}"
    )


class EscalationService:
    """Create, query and update escalation records."""

    def __init__(
        self,
        db: Client,
        store: RetrievalStore | None = None,
        generator: TextGenerator | None = None,
    ):
        self.db = db
        self.store = store
        self.generator = generator

    # ── Create / read ────────────────────────────────────

    def create_escalation(
        self,
        query: str,
        course_id: str,
        student_id: str,
        category: str | None = None,
    ) -> EscalationResult:
        """Persist a pending escalation and return its id with the student-facing acknowledgement."""
        if not query or not query.strip():
            raise ValidationError("Escalation query must be a non-empty string")
        if not course_id or not student_id:
            raise ValidationError("course_id and student_id are required")
        if category is not None and category not in ALL_CATEGORIES:
            raise ValidationError(
                f"Unknown escalation category: {category}",
                detail=f"Allowed: {', '.join(ALL_CATEGORIES)}",
            )

        if category is None:
            category = categorize_escalation(query).category

        result = execute_query(
            "create_escalation",
            self.db.table(TABLE).insert({
                "course_id": course_id,
                "student_id": student_id,
                "query": query.strip(),
                "category": category,
                "status": "pending",
            }),
        )
        if not result.data:
            raise UpstreamError("storage:create_escalation", "no row returned")

        escalation_id = str(result.data[0]["id"])
        logger.info(f"🆘 Escalation {escalation_id} created for course {course_id} ({category})")
        return EscalationResult(
            escalation_id=escalation_id,
            category=category,
            message=acknowledgement_message(escalation_id),
        )

    def get(self, escalation_id: str) -> dict:
        result = execute_query(
            "get_escalation",
            self.db.table(TABLE).select("*").eq("id", escalation_id).limit(1),
        )
        if not result.data:
            raise NotFoundError("Escalation", escalation_id)
        return result.data[0]

    def list_escalations(
        self,
        course_id: str,
        status: str | None = None,
        category: str | None = None,
        student_id: str | None = None,
    ) -> list[dict]:
        """Escalations for a course, newest first."""
        if status is not None and status not in STATUSES:
            raise ValidationError(f"Invalid status: {status}")

        query = self.db.table(TABLE).select("*").eq("course_id", course_id)
        if status:
            query = query.eq("status", status)
        if category:
            query = query.eq("category", category)
        if student_id:
            query = query.eq("student_id", student_id)

        result = execute_query("list_escalations", query.order("created_at", desc=True))
        return result.data or []

    # ── Human actions ────────────────────────────────────

    def _update(self, escalation_id: str, fields: dict, operation: str) -> dict:
        self.get(escalation_id)
        result = execute_query(
            operation,
            self.db.table(TABLE).update(fields).eq("id", escalation_id),
        )
        if not result.data:
            raise NotFoundError("Escalation", escalation_id)
        return result.data[0]

    def update_response(
        self,
        escalation_id: str,
        response_text: str,
        status: str | None = None,
        responded_by: str | None = None,
    ) -> dict:
        """Attach the professor's response; optionally resolve or reopen in the same write."""
        if not response_text or not response_text.strip():
            raise ValidationError("Response must be a non-empty string")
        if status is not None and status not in STATUSES:
            raise ValidationError(f"Invalid status: {status}")

        fields = {
            "response": response_text.strip(),
            "responded_at": _now(),
            "responded_by": responded_by,
        }
        if status == "resolved":
            fields.update(status="resolved", resolved_at=_now())
        elif status == "pending":
            fields.update(status="pending", resolved_at=None)

        row = self._update(escalation_id, fields, "respond_escalation")
        logger.info(f"✉️ Escalation {escalation_id} responded (status={row.get('status')})")
        return row

    def resolve(self, escalation_id: str) -> dict:
        current = self.get(escalation_id)
        if current.get("status") == "resolved" and current.get("resolved_at"):
            return current
        row = self._update(escalation_id, {"status": "resolved", "resolved_at": _now()}, "resolve_escalation")
        logger.info(f"✅ Escalation {escalation_id} resolved")
        return row

    def reopen(self, escalation_id: str) -> dict:
        row = self._update(escalation_id, {"status": "pending", "resolved_at": None}, "reopen_escalation")
        logger.info(f"🔁 Escalation {escalation_id} reopened")
        return row

    # ── Suggested response (assistive only) ──────────────

    def suggest_response(self, escalation_id: str) -> SuggestionResponse:
        """Draft a reply for the professor. Never sent automatically.

        Retrieval problems only mean the draft has no course context;
        a generation failure is raised as UpstreamError.
        """
        if self.generator is None:
            raise UpstreamError("generation", "no text generator configured")

        escalation = self.get(escalation_id)
        settings = get_settings()

        context = ""
        if self.store is not None:
            try:
                chunks = self.store.search(
                    escalation["query"],
                    escalation["course_id"],
                    k=settings.SUGGESTION_TOP_K,
                    min_score=settings.SUGGESTION_SIMILARITY_THRESHOLD,
                )
                context = build_context(chunks) if chunks else ""
            except UpstreamError as e:
                logger.warning(f"⚠️ Suggestion retrieval failed for {escalation_id}, continuing without context: {e.detail}")

        context_section = (
            f"\n\nRelevant Course Context:\n{context}\n\n"
            "Use this context to understand what the student is asking about."
            if context else ""
        )
        suggestion = self.generator.generate(
            SUGGESTION_PROMPT_TEMPLATE.format(query=escalation["query"], context_section=context_section),
            system=SUGGESTION_SYSTEM_PROMPT.format(category=escalation.get("category") or OTHER),
        )
        return SuggestionResponse(
            escalation_id=escalation_id,
            suggestion=suggestion.strip(),
            used_context=bool(context),
        )
