"""
Announcements feature: schedule entries, announcement drafts, Conductor results.
"""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class ScheduleEntry(BaseModel):
    """One week of a course schedule."""
    week_number: int = Field(ge=1)
    topic: str
    assignments: str | None = None
    readings: str | None = None
    due_date: date | None = None


class ScheduleUpload(BaseModel):
    """Request to replace/extend a course schedule."""
    entries: list[ScheduleEntry]


class ParsedSchedule(BaseModel):
    """Entries read from a schedule file; rows that could not be used are listed in `errors`."""
    entries: list[ScheduleEntry]
    errors: list[str] = []


class ScheduleFileResult(BaseModel):
    updated: int
    errors: list[str] = []


class AnnouncementUpdate(BaseModel):
    """Human edit of a draft."""
    title: str | None = None
    content: str | None = None


class AnnouncementResponse(BaseModel):
    id: str
    course_id: str
    week_number: int
    title: str
    content: str
    status: Literal["draft", "published"]
    created_at: datetime
    updated_at: datetime
    published_at: datetime | None = None


class ConductorRunRequest(BaseModel):
    """Run for one course, or every course when course_id is omitted."""
    course_id: str | None = None
    week_number: int | None = Field(default=None, ge=1)


class ConductorResult(BaseModel):
    """Outcome of one Conductor decision for a (course, week)."""
    course_id: str
    week_number: int | None = None
    success: bool = True
    announcement: dict | None = None
    created: bool = False  # False when an existing announcement was returned
    used_fallback: bool = False
    error: str | None = None
