"""
Assistant feature: student question endpoint, chat history and the professor's pulse report.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from app.core.dependencies import Caller, get_caller, get_chat_log_service, get_chat_service, require_professor
from app.core.exceptions import PermissionDeniedError
from app.features.assistant.history import MAX_HISTORY_LIMIT, ChatLogService
from app.features.assistant.schemas import ChatRequest, ChatResponse, PulseReport
from app.features.assistant.service import ChatService

router = APIRouter()
pulse_router = APIRouter()


@router.post("/ask", response_model=ChatResponse)
def ask_question(
    data: ChatRequest,
    caller: Caller = Depends(get_caller),
    service: ChatService = Depends(get_chat_service),
):
    """Route a question to the policy or concept agent, escalating when needed."""
    return service.ask(data.question, data.course_id, caller.user_id)


@router.get("/history")
def chat_history(
    course_id: str,
    user_id: str | None = None,
    limit: int = Query(default=30, ge=1, le=MAX_HISTORY_LIMIT),
    caller: Caller = Depends(get_caller),
    service: ChatLogService = Depends(get_chat_log_service),
):
    """Students read their own history; professors read one student's or the whole course's."""
    if caller.role != "professor":
        if user_id and user_id != caller.user_id:
            raise PermissionDeniedError("Students can only view their own chat history")
        user_id = caller.user_id
    entries = service.history(course_id, user_id, limit)
    return {"data": [entry.model_dump(mode="json") for entry in entries]}


@pulse_router.get("/", response_model=PulseReport)
def pulse_report(
    course_id: str,
    today: date | None = None,
    caller: Caller = Depends(require_professor),
    service: ChatLogService = Depends(get_chat_log_service),
):
    return service.pulse(course_id, today)
