"""
Assistant feature: per-question orchestration.

Router -> agent -> escalation handler (when needed) -> chat log.
A well-formed question never hard-fails: the worst case is an escalation
with a placeholder answer.
"""

import logging

from supabase import Client

from app.core.database import execute_query
from app.core.exceptions import AppBaseError, UpstreamError, ValidationError
from app.features.assistant.agents import ConceptAgent, PolicyAgent
from app.features.assistant.classifier import QueryClassifier
from app.features.assistant.prompts import ERROR_ESCALATION_MESSAGE
from app.features.assistant.schemas import AgentAnswer, ChatResponse, Route, RoutingDecision
from app.features.escalations.categorizer import CONCEPT_QUESTION
from app.features.escalations.service import EscalationService

logger = logging.getLogger(__name__)

CHAT_LOG_TABLE = "chat_logs"


class ChatService:

    def __init__(
        self,
        db: Client,
        classifier: QueryClassifier,
        policy_agent: PolicyAgent,
        concept_agent: ConceptAgent,
        escalations: EscalationService,
    ):
        self.db = db
        self.classifier = classifier
        self.policy_agent = policy_agent
        self.concept_agent = concept_agent
        self.escalations = escalations

    def _route(self, question: str) -> RoutingDecision:
        try:
            return self.classifier.classify(question)
        except UpstreamError as e:
            logger.warning(f"⚠️ Router unavailable, escalating: {e.detail}")
            return RoutingDecision(route=Route.ESCALATE, reason="classifier unavailable")

    def _escalate(self, question: str, course_id: str, student_id: str, category: str | None):
        try:
            return self.escalations.create_escalation(question, course_id, student_id, category)
        except AppBaseError as e:
            logger.error(f"❌ Could not record escalation for course {course_id}: {e.message} {e.detail or ''}")
            return None

    def _log_exchange(self, course_id: str, student_id: str, question: str, reply: ChatResponse) -> None:
        try:
            execute_query(
                "log_chat",
                self.db.table(CHAT_LOG_TABLE).insert({
                    "course_id": course_id,
                    "user_id": student_id,
                    "message": question,
                    "response": reply.response,
                    "agent": reply.agent,
                    "route": reply.route.value,
                    "citations": [c.model_dump() for c in reply.citations],
                    "escalation_id": reply.escalation_id,
                }),
            )
        except AppBaseError as e:
            logger.warning(f"⚠️ Chat log write failed for course {course_id}: {e.detail}")

    def ask(self, question: str, course_id: str, student_id: str) -> ChatResponse:
        if not question or not question.strip():
            raise ValidationError("Question must be a non-empty string")
        if not course_id:
            raise ValidationError("course_id is required")

        question = question.strip()
        decision = self._route(question)
        logger.info(f"🧭 Routed question for course {course_id} -> {decision.route.value}")

        if decision.route == Route.ESCALATE:
            escalation = self._escalate(question, course_id, student_id, None)
            reply = ChatResponse(
                response=escalation.message if escalation else ERROR_ESCALATION_MESSAGE,
                route=decision.route,
                agent="escalation",
                escalated=True,
                escalation_id=escalation.escalation_id if escalation else None,
            )
        else:
            if decision.route == Route.POLICY:
                agent, category = self.policy_agent, None
            else:
                agent, category = self.concept_agent, CONCEPT_QUESTION

            answer: AgentAnswer = agent.answer(question, course_id)
            escalation = None
            if answer.should_escalate:
                escalation = self._escalate(question, course_id, student_id, category)

            reply = ChatResponse(
                response=answer.response_text,
                route=decision.route,
                agent=agent.name,
                citations=answer.citations,
                escalated=answer.should_escalate,
                escalation_id=escalation.escalation_id if escalation else None,
                confidence=answer.confidence,
            )

        self._log_exchange(course_id, student_id, question, reply)
        return reply
