"""
Escalations feature: request/response models.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

EscalationStatus = Literal["pending", "resolved"]


class EscalationCreate(BaseModel):
    """Student asks for a human directly."""
    query: str = Field(min_length=1)
    course_id: str = Field(min_length=1)
    category: str | None = None


class EscalationResult(BaseModel):
    escalation_id: str
    category: str
    message: str


class EscalationRespond(BaseModel):
    response: str = Field(min_length=1)
    status: EscalationStatus | None = None


class EscalationResponse(BaseModel):
    id: str
    course_id: str
    student_id: str
    query: str
    category: str | None = None
    status: EscalationStatus
    response: str | None = None
    responded_by: str | None = None
    created_at: datetime
    resolved_at: datetime | None = None
    responded_at: datetime | None = None


class SuggestionResponse(BaseModel):
    escalation_id: str
    suggestion: str
    used_context: bool
