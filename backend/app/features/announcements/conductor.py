"""
Announcements feature: the Conductor, which drafts one announcement per
course and week from the course schedule.

Per (course, week) it only ever moves absent -> draft. An existing
announcement is returned untouched, whatever its status. Two runs racing
past the existence check are settled by the UNIQUE (course_id, week_number)
constraint: the loser reads back and returns the winner's row.
"""

import logging
import re
from datetime import date

from supabase import Client

from app.config import Settings, get_settings
from app.core.database import execute_query
from app.core.exceptions import AppBaseError, ConflictError, NotFoundError, UpstreamError, ValidationError
from app.core.llm_provider import TextGenerator
from app.features.announcements.schedules import ScheduleRepository
from app.features.announcements.schemas import ConductorResult, ScheduleEntry
from app.features.announcements.service import AnnouncementService

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 80

ANNOUNCEMENT_SYSTEM_PROMPT = """You are a helpful professor writing a weekly course announcement.
Write in a friendly, professional tone. Keep it concise but informative.
Include the week number, topic, assignments, readings, and due dates from the schedule."""

ANNOUNCEMENT_PROMPT_TEMPLATE = """Generate a weekly course announcement for {course_name}.

Week: {week_number}
Topic: {topic}
{details}

Put the title alone on the first line (e.g. "Week {week_number}: {topic}"), then the announcement body.
The body should be a warm, professional message that introduces the week's content and reminds students about assignments and readings."""

_TITLE_PREFIX = re.compile(r"^\s*(?:#+\s*)?(?:\*\*)?\s*title\s*:\s*", re.IGNORECASE)


# ── Week resolution ──────────────────────────────────────

def resolve_week(week_number: int | None = None, today: date | None = None, settings: Settings | None = None) -> int:
    """Explicit week > demo week > whole weeks since term start (+1), floored at 1."""
    if week_number is not None:
        if week_number < 1:
            raise ValidationError("week_number must be >= 1", detail=f"week_number={week_number}")
        return week_number

    settings = settings or get_settings()
    if settings.DEMO_MODE:
        return settings.DEMO_WEEK

    today = today or date.today()
    term_start = settings.TERM_START_DATE or date(today.year, 8, 20)
    elapsed_weeks = (today - term_start).days // 7
    return max(1, elapsed_weeks + 1)


# ── Content ──────────────────────────────────────────────

def _format_due_date(due: date) -> str:
    return f"{due:%B} {due.day}, {due.year}"


def _schedule_details(entry: ScheduleEntry) -> list[tuple[str, str]]:
    details = []
    if entry.assignments:
        details.append(("Assignments", entry.assignments))
    if entry.readings:
        details.append(("Readings", entry.readings))
    if entry.due_date:
        details.append(("Due Date", _format_due_date(entry.due_date)))
    return details


def default_title(entry: ScheduleEntry) -> str:
    return f"Week {entry.week_number}: {entry.topic}"


def build_fallback_announcement(entry: ScheduleEntry) -> tuple[str, str]:
    """Deterministic announcement built straight from the schedule fields."""
    lines = [
        f"Welcome to Week {entry.week_number}!",
        "",
        f"This week we'll be covering {entry.topic}.",
        "",
    ]
    details = _schedule_details(entry)
    lines.extend(f"**{label}:** {value}" for label, value in details)
    if details:
        lines.append("")
    lines.extend(["Best regards,", "Professor"])
    return default_title(entry), "\n".join(lines)


def parse_generated_announcement(text: str, entry: ScheduleEntry) -> tuple[str, str] | None:
    """Split generated text into (title, content); None when there is no usable body."""
    text = (text or "").strip()
    if not text:
        return None

    lines = text.splitlines()
    first = lines[0].strip()
    candidate = _TITLE_PREFIX.sub("", first).strip().strip("*#").strip()

    looks_like_title = (
        candidate
        and len(candidate) < MAX_TITLE_LENGTH
        and (candidate.endswith(":") or not re.search(r"[.!?]$", candidate))
    )
    if looks_like_title:
        title = candidate.rstrip(":").strip() or default_title(entry)
        content = "\n".join(lines[1:]).strip()
    else:
        title = default_title(entry)
        content = text

    if not content:
        return None
    return title, content


class Conductor:
    """Weekly announcement drafter."""

    def __init__(
        self,
        db: Client,
        schedules: ScheduleRepository,
        announcements: AnnouncementService,
        generator: TextGenerator,
    ):
        self.db = db
        self.schedules = schedules
        self.announcements = announcements
        self.generator = generator

    def _get_course(self, course_id: str) -> dict:
        result = execute_query(
            "get_course",
            self.db.table("courses").select("id, name").eq("id", course_id).limit(1),
        )
        if not result.data:
            raise NotFoundError("Course", course_id)
        return result.data[0]

    def _generate(self, entry: ScheduleEntry, course_name: str) -> tuple[str, str, bool]:
        details = "\n".join(f"{label}: {value}" for label, value in _schedule_details(entry))
        prompt = ANNOUNCEMENT_PROMPT_TEMPLATE.format(
            course_name=course_name,
            week_number=entry.week_number,
            topic=entry.topic,
            details=details,
        )
        try:
            parsed = parse_generated_announcement(
                self.generator.generate(prompt, system=ANNOUNCEMENT_SYSTEM_PROMPT),
                entry,
            )
        except UpstreamError as e:
            logger.warning(f"⚠️ Announcement generation failed, using template: {e.detail}")
            parsed = None
        else:
            if parsed is None:
                logger.warning("⚠️ Announcement generation returned no body, using template")

        if parsed is None:
            title, content = build_fallback_announcement(entry)
            return title, content, True
        title, content = parsed
        return title, content, False

    def run(self, course_id: str, week_number: int | None = None) -> ConductorResult:
        """Return the (course, week) announcement, drafting it if absent.

        Raises:
            NotFoundError: Unknown course, or no schedule entry for the week.
        """
        week = resolve_week(week_number)
        course = self._get_course(course_id)

        existing = self.announcements.get_for_week(course_id, week)
        if existing:
            logger.info(f"♻️ Announcement already exists for course {course_id} week {week} ({existing['status']})")
            return ConductorResult(course_id=course_id, week_number=week, announcement=existing)

        entry = self.schedules.get_entry(course_id, week)
        if entry is None:
            raise NotFoundError(
                "Schedule",
                f"{course_id} week {week}",
                detail=f"No schedule found for course {course_id} at week {week}. Please upload a schedule first.",
            )

        title, content, used_fallback = self._generate(entry, course.get("name") or "the course")

        try:
            created = self.announcements.create_draft(course_id, week, title, content)
        except ConflictError:
            existing = self.announcements.get_for_week(course_id, week)
            if existing is None:
                raise
            logger.info(f"♻️ Lost draft race for course {course_id} week {week}, returning existing")
            return ConductorResult(course_id=course_id, week_number=week, announcement=existing)

        logger.info(f"📝 Drafted announcement {created['id']} for course {course_id} week {week}")
        return ConductorResult(
            course_id=course_id,
            week_number=week,
            announcement=created,
            created=True,
            used_fallback=used_fallback,
        )

    def run_all(self, week_number: int | None = None) -> list[ConductorResult]:
        """Run for every course; one course failing never stops the batch."""
        week = resolve_week(week_number)
        result = execute_query("list_courses", self.db.table("courses").select("id"))
        courses = result.data or []
        logger.info(f"🎼 Conductor batch for week {week} over {len(courses)} course(s)")

        results = []
        for course in courses:
            course_id = str(course["id"])
            try:
                results.append(self.run(course_id, week))
            except AppBaseError as e:
                logger.error(f"❌ Conductor failed for course {course_id}: {e.message} {e.detail or ''}")
                results.append(ConductorResult(
                    course_id=course_id,
                    week_number=week,
                    success=False,
                    error=e.detail or e.message,
                ))
            except Exception as e:
                logger.error(f"❌ Conductor crashed for course {course_id}: {e}", exc_info=True)
                results.append(ConductorResult(
                    course_id=course_id,
                    week_number=week,
                    success=False,
                    error=str(e),
                ))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"🎼 Conductor batch done: {succeeded}/{len(results)} succeeded")
        return results
