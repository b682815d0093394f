"""
Assistant feature: routing, agent and chat models.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class Route(str, Enum):
    POLICY = "POLICY"
    CONCEPT = "CONCEPT"
    ESCALATE = "ESCALATE"


class RoutingDecision(BaseModel):
    """Ephemeral classification of one question. Never persisted."""
    route: Route
    raw_label: str | None = None
    reason: str = ""


class Citation(BaseModel):
    source: str
    page: int | None = None
    excerpt: str


class AgentAnswer(BaseModel):
    response_text: str
    citations: list[Citation] = []
    should_escalate: bool = False
    confidence: float = 0.0


class ChatRequest(BaseModel):
    question: str = Field(min_length=1)
    course_id: str = Field(min_length=1)


class ChatResponse(BaseModel):
    response: str
    route: Route
    agent: str  # policy | concept | escalation
    citations: list[Citation] = []
    escalated: bool = False
    escalation_id: str | None = None
    confidence: float = 0.0


class ChatLogEntry(BaseModel):
    """One logged question and the answer it got."""
    id: str
    message: str
    response: str
    agent: str | None = None
    route: Route | None = None
    citations: list[Citation] = []
    escalated: bool = False
    escalation_id: str | None = None
    created_at: datetime


class QuestionCount(BaseModel):
    question: str
    count: int


class DailyCount(BaseModel):
    day: date
    count: int


class PulseReport(BaseModel):
    """Professor-facing summary of a course's questions."""
    course_id: str
    total_queries: int = 0
    escalation_count: int = 0
    queries_today: int = 0
    escalations_pending: int = 0
    query_distribution: dict[str, int] = Field(default_factory=lambda: {route.value: 0 for route in Route})
    top_confusions: list[QuestionCount] = []
    daily_trends: list[DailyCount] = []
