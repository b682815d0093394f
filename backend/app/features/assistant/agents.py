"""
Assistant feature: Policy and Concept answer agents.

An agent retrieves chunks of its own content type, asks the generator for a
grounded answer and reports whether the question needs a human. Agents never
write escalation records; ChatService does that when should_escalate is set.
"""

import logging
from pathlib import PurePath

from app.config import get_settings
from app.core.exceptions import UpstreamError, ValidationError
from app.core.llm_provider import TextGenerator
from app.features.assistant.prompts import (
    CONCEPT_AGENT_PROMPT,
    CONCEPT_ESCALATION_MESSAGE,
    ERROR_ESCALATION_MESSAGE,
    INSUFFICIENT_CONTEXT,
    POLICY_AGENT_PROMPT,
    POLICY_ESCALATION_MESSAGE,
)
from app.features.assistant.schemas import AgentAnswer, Citation
from app.features.knowledge.schemas import ContentType, RetrievedChunk
from app.features.knowledge.store import RetrievalStore

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "Syllabus"
EXCERPT_LENGTH = 200
_INSUFFICIENT_PHRASES = ("i don't know", "i do not know", "not in the context")


def _source_name(chunk: RetrievedChunk) -> str:
    source = chunk.metadata.get("source")
    return PurePath(source).stem if source else DEFAULT_SOURCE


def build_citations(chunks: list[RetrievedChunk]) -> list[Citation]:
    citations = []
    for chunk in chunks:
        source = _source_name(chunk)
        if chunk.week_number:
            source += f" Week {chunk.week_number}"
        if chunk.topic:
            source += f" - {chunk.topic}"
        excerpt = chunk.content[:EXCERPT_LENGTH]
        if len(chunk.content) > EXCERPT_LENGTH:
            excerpt += "..."
        citations.append(Citation(source=source, page=chunk.page_number, excerpt=excerpt))
    return citations


def build_context(chunks: list[RetrievedChunk]) -> str:
    """Number the chunks as [Source i] blocks for the prompt."""
    blocks = []
    for index, chunk in enumerate(chunks, start=1):
        prefix = f"[Source {index}]"
        if chunk.page_number:
            prefix += f" Page {chunk.page_number}"
        if chunk.week_number:
            prefix += f" Week {chunk.week_number}"
        if chunk.topic:
            prefix += f" - {chunk.topic}"
        blocks.append(f"{prefix}\n{chunk.content}")
    return "\n\n".join(blocks)


def signals_insufficient_context(text: str) -> bool:
    if not text or not text.strip():
        return True
    if INSUFFICIENT_CONTEXT in text:
        return True
    lowered = text.lower().replace("’", "'")
    return any(phrase in lowered for phrase in _INSUFFICIENT_PHRASES)


class AnswerAgent:
    """Retrieval-grounded answerer for one content type."""

    name: str = ""
    content_type: ContentType
    prompt_template: str
    escalation_message: str

    def __init__(
        self,
        store: RetrievalStore,
        generator: TextGenerator,
        top_k: int | None = None,
        threshold: float | None = None,
    ):
        settings = get_settings()
        self.store = store
        self.generator = generator
        self.top_k = top_k or settings.RETRIEVAL_TOP_K
        self.threshold = settings.QA_SIMILARITY_THRESHOLD if threshold is None else threshold

    def _escalate(self, message: str, confidence: float = 0.0) -> AgentAnswer:
        return AgentAnswer(
            response_text=message,
            citations=[],
            should_escalate=True,
            confidence=confidence,
        )

    def answer(self, question: str, course_id: str) -> AgentAnswer:
        """Answer from this agent's chunks, or flag the question for escalation.

        Upstream failures degrade to an escalation answer and never raise.
        """
        if not question or not question.strip():
            raise ValidationError("Question must be a non-empty string")

        try:
            chunks = self.store.search(
                question,
                course_id,
                k=self.top_k,
                min_score=self.threshold,
                content_type=self.content_type,
            )
        except UpstreamError as e:
            logger.error(f"❌ {self.name} agent retrieval failed for course {course_id}: {e.detail}")
            return self._escalate(ERROR_ESCALATION_MESSAGE)

        if not chunks:
            logger.info(f"🔍 {self.name} agent found no chunks above {self.threshold} for course {course_id}")
            return self._escalate(self.escalation_message)

        confidence = round(sum(c.score for c in chunks) / len(chunks), 4)
        prompt = self.prompt_template.format(
            context=build_context(chunks),
            question=question.strip(),
            sentinel=INSUFFICIENT_CONTEXT,
        )

        try:
            text = self.generator.generate(prompt)
        except UpstreamError as e:
            logger.error(f"❌ {self.name} agent generation failed for course {course_id}: {e.detail}")
            return self._escalate(ERROR_ESCALATION_MESSAGE, confidence)

        if signals_insufficient_context(text):
            logger.info(f"🤷 {self.name} agent: context insufficient, escalating")
            return self._escalate(self.escalation_message, confidence)

        return AgentAnswer(
            response_text=text,
            citations=build_citations(chunks),
            should_escalate=False,
            confidence=confidence,
        )


class PolicyAgent(AnswerAgent):
    name = "policy"
    content_type = "policy"
    prompt_template = POLICY_AGENT_PROMPT
    escalation_message = POLICY_ESCALATION_MESSAGE


class ConceptAgent(AnswerAgent):
    name = "concept"
    content_type = "concept"
    prompt_template = CONCEPT_AGENT_PROMPT
    escalation_message = CONCEPT_ESCALATION_MESSAGE
