"""
Announcements feature: API routes for drafts, schedules and manual Conductor runs.
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from app.core.dependencies import (
    Caller,
    get_announcement_service,
    get_caller,
    get_conductor,
    get_schedule_repository,
    require_professor,
)
from app.core.exceptions import PermissionDeniedError
from app.features.announcements.conductor import Conductor
from app.features.announcements.schedules import ScheduleRepository, parse_schedule_file
from app.features.announcements.schemas import (
    AnnouncementUpdate,
    ConductorRunRequest,
    ScheduleFileResult,
    ScheduleUpload,
)
from app.features.announcements.service import AnnouncementService

logger = logging.getLogger(__name__)

router = APIRouter()
conductor_router = APIRouter()


# ── Announcements ────────────────────────────────────────

@router.get("/")
def list_announcements(
    course_id: str,
    caller: Caller = Depends(get_caller),
    service: AnnouncementService = Depends(get_announcement_service),
):
    """Professors see drafts too; students only see published announcements."""
    status = None if caller.role == "professor" else "published"
    return {"data": service.list_for_course(course_id, status)}


@router.get("/{announcement_id}")
def get_announcement(
    announcement_id: str,
    caller: Caller = Depends(get_caller),
    service: AnnouncementService = Depends(get_announcement_service),
):
    announcement = service.get(announcement_id)
    if caller.role != "professor" and announcement["status"] != "published":
        raise PermissionDeniedError("Announcement is not published yet")
    return {"data": announcement}


@router.put("/{announcement_id}")
def update_announcement(
    announcement_id: str,
    data: AnnouncementUpdate,
    caller: Caller = Depends(require_professor),
    service: AnnouncementService = Depends(get_announcement_service),
):
    return {"data": service.update_draft(announcement_id, data.title, data.content)}


@router.post("/{announcement_id}/publish")
def publish_announcement(
    announcement_id: str,
    caller: Caller = Depends(require_professor),
    service: AnnouncementService = Depends(get_announcement_service),
):
    return {"data": service.publish(announcement_id)}


# ── Schedules ────────────────────────────────────────────

@router.get("/schedule/{course_id}")
def get_schedule(
    course_id: str,
    caller: Caller = Depends(get_caller),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
):
    return {"data": [entry.model_dump(mode="json") for entry in schedules.list_entries(course_id)]}


@router.put("/schedule/{course_id}")
def upload_schedule(
    course_id: str,
    data: ScheduleUpload,
    caller: Caller = Depends(require_professor),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
):
    return {"updated": schedules.upsert_entries(course_id, data.entries)}


@router.post("/schedule/{course_id}/upload", response_model=ScheduleFileResult)
def upload_schedule_file(
    course_id: str,
    file: UploadFile = File(...),
    caller: Caller = Depends(require_professor),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
):
    """Load a CSV schedule (week, topic, assignments, readings, due date columns).

    Usable rows are saved; skipped or replaced rows are listed in `errors`.
    """
    filename = file.filename or "schedule.csv"
    parsed = parse_schedule_file(file.file.read(), filename)
    updated = schedules.upsert_entries(course_id, parsed.entries)
    logger.info(f"📥 Schedule file {filename} by {caller.user_id}: {updated} week(s), {len(parsed.errors)} row issue(s)")
    return ScheduleFileResult(updated=updated, errors=parsed.errors)


# ── Conductor ────────────────────────────────────────────

@conductor_router.post("/run")
def run_conductor(
    data: ConductorRunRequest,
    caller: Caller = Depends(require_professor),
    conductor: Conductor = Depends(get_conductor),
):
    """Draft this week's announcement for one course, or for all courses."""
    if data.course_id:
        result = conductor.run(data.course_id, data.week_number)
        return {"data": result.model_dump(mode="json")}

    results = conductor.run_all(data.week_number)
    return {
        "data": [r.model_dump(mode="json") for r in results],
        "succeeded": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success),
    }
