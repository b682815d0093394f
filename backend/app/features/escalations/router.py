"""
Escalations feature: API routes for the professor's escalation queue.
"""

from fastapi import APIRouter, Depends

from app.core.dependencies import Caller, get_caller, get_escalation_service, require_professor
from app.core.exceptions import PermissionDeniedError
from app.features.escalations.schemas import (
    EscalationCreate,
    EscalationRespond,
    EscalationResult,
    SuggestionResponse,
)
from app.features.escalations.service import EscalationService

router = APIRouter()


@router.post("/", response_model=EscalationResult)
def create_escalation(
    data: EscalationCreate,
    caller: Caller = Depends(get_caller),
    service: EscalationService = Depends(get_escalation_service),
):
    """Student asks for the professor directly."""
    return service.create_escalation(data.query, data.course_id, caller.user_id, data.category)


@router.get("/")
def list_escalations(
    course_id: str,
    status: str | None = None,
    category: str | None = None,
    caller: Caller = Depends(get_caller),
    service: EscalationService = Depends(get_escalation_service),
):
    """Professors see the course queue; students see only their own escalations."""
    student_id = None if caller.role == "professor" else caller.user_id
    return {"data": service.list_escalations(course_id, status, category, student_id)}


@router.get("/{escalation_id}")
def get_escalation(
    escalation_id: str,
    caller: Caller = Depends(get_caller),
    service: EscalationService = Depends(get_escalation_service),
):
    escalation = service.get(escalation_id)
    if caller.role != "professor" and escalation.get("student_id") != caller.user_id:
        raise PermissionDeniedError("You can only view your own escalations")
    return {"data": escalation}


@router.post("/{escalation_id}/respond")
def respond_to_escalation(
    escalation_id: str,
    data: EscalationRespond,
    caller: Caller = Depends(require_professor),
    service: EscalationService = Depends(get_escalation_service),
):
    escalation = service.update_response(escalation_id, data.response, data.status, caller.user_id)
    return {"data": escalation}


@router.post("/{escalation_id}/resolve")
def resolve_escalation(
    escalation_id: str,
    caller: Caller = Depends(require_professor),
    service: EscalationService = Depends(get_escalation_service),
):
    return {"data": service.resolve(escalation_id)}


@router.post("/{escalation_id}/reopen")
def reopen_escalation(
    escalation_id: str,
    caller: Caller = Depends(require_professor),
    service: EscalationService = Depends(get_escalation_service),
):
    return {"data": service.reopen(escalation_id)}


@router.post("/{escalation_id}/suggest", response_model=SuggestionResponse)
def suggest_response(
    escalation_id: str,
    caller: Caller = Depends(require_professor),
    service: EscalationService = Depends(get_escalation_service),
):
    """Draft a reply for the professor to edit. Nothing is sent to the student."""
    return service.suggest_response(escalation_id)
