"""
Announcements feature: course schedules.

Schedules are written by the professor's upload flow and read on every
ingestion (topic matching) and Conductor run, so reads go through the
app's LookupCache. Any write through this repository invalidates the
course's cached entries.

parse_schedule_file turns a CSV export (one row per week) into entries.
"""

import csv
import io
import logging
import re

from pydantic import ValidationError as PydanticValidationError
from supabase import Client

from app.core.cache import LookupCache
from app.core.database import execute_query
from app.core.exceptions import ValidationError
from app.features.announcements.schemas import ParsedSchedule, ScheduleEntry

logger = logging.getLogger(__name__)

TABLE = "schedules"


class ScheduleRepository:

    def __init__(self, db: Client, cache: LookupCache):
        self.db = db
        self.cache = cache

    @staticmethod
    def _cache_key(course_id: str) -> str:
        return f"schedule:{course_id}"

    def _load(self, course_id: str) -> list[ScheduleEntry]:
        result = execute_query(
            "load_schedule",
            self.db.table(TABLE)
            .select("week_number, topic, assignments, readings, due_date")
            .eq("course_id", course_id)
            .order("week_number"),
        )
        return [ScheduleEntry(**row) for row in result.data or []]

    def list_entries(self, course_id: str) -> list[ScheduleEntry]:
        """All schedule weeks for a course, ordered by week."""
        return self.cache.get_or_load(self._cache_key(course_id), lambda: self._load(course_id))

    def get_entry(self, course_id: str, week_number: int) -> ScheduleEntry | None:
        for entry in self.list_entries(course_id):
            if entry.week_number == week_number:
                return entry
        return None

    def upsert_entries(self, course_id: str, entries: list[ScheduleEntry]) -> int:
        """Insert or replace weeks (unique on course_id + week_number)."""
        if not entries:
            return 0
        rows = [
            {"course_id": course_id, **entry.model_dump(mode="json")}
            for entry in entries
        ]
        try:
            execute_query(
                "upsert_schedule",
                self.db.table(TABLE).upsert(rows, on_conflict="course_id,week_number"),
            )
        finally:
            self.cache.invalidate(self._cache_key(course_id))

        logger.info(f"📅 Upserted {len(rows)} schedule week(s) for course {course_id}")
        return len(rows)


# ── Schedule files ───────────────────────────────────────

SCHEDULE_FILE_EXTENSIONS = {"csv"}

_NUMBER = re.compile(r"\d+")


def _find_column(headers: list[str], needles: tuple[str, ...], taken: set[str]) -> str | None:
    for header in headers:
        if header in taken:
            continue
        if any(needle in header.lower() for needle in needles):
            return header
    return None


def parse_schedule_file(file_bytes: bytes, filename: str) -> ParsedSchedule:
    """Read schedule weeks from a CSV file with a header row.

    Columns are matched by name, case-insensitively: "week" and "topic" are
    required; "assignment", "reading" and "due"/"date" are optional. Rows
    without a usable week number or topic are skipped and reported. When a
    week appears twice the later row wins.

    Raises:
        ValidationError: Not a CSV, not UTF-8, missing required columns,
            or no usable row.
    """
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in SCHEDULE_FILE_EXTENSIONS:
        raise ValidationError(
            f"Unsupported schedule file: .{ext or '?'}",
            detail="Export the schedule as CSV (one row per week)",
        )

    try:
        text = file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("Schedule file is not valid UTF-8", detail=str(e))

    reader = csv.DictReader(io.StringIO(text), skipinitialspace=True)
    headers = [h.strip() for h in reader.fieldnames or [] if h and h.strip()]
    reader.fieldnames = [h.strip() if h else "" for h in reader.fieldnames or []]

    taken: set[str] = set()
    columns = {}
    for field, needles in (
        ("week_number", ("week",)),
        ("topic", ("topic",)),
        ("assignments", ("assignment",)),
        ("readings", ("reading",)),
        ("due_date", ("due", "date")),
    ):
        column = _find_column(headers, needles, taken)
        if column:
            columns[field] = column
            taken.add(column)

    missing = [field for field in ("week_number", "topic") if field not in columns]
    if missing:
        raise ValidationError(
            "Schedule file is missing required columns",
            detail=f"missing {', '.join(missing)}; found {', '.join(headers) or 'no header'}",
        )

    by_week: dict[int, ScheduleEntry] = {}
    errors: list[str] = []
    for line, record in enumerate(reader, start=2):
        values = {
            field: (record.get(column) or "").strip()
            for field, column in columns.items()
        }
        if not any(values.values()):
            continue

        week = _NUMBER.search(values["week_number"])
        if not week:
            errors.append(f"Row {line}: invalid week number {values['week_number']!r}")
            continue
        if not values["topic"]:
            errors.append(f"Row {line}: missing topic")
            continue

        try:
            entry = ScheduleEntry(
                week_number=int(week.group()),
                **{field: value or None for field, value in values.items() if field != "week_number"},
            )
        except PydanticValidationError as e:
            problem = e.errors()[0]
            errors.append(f"Row {line}: {problem['loc'][0]} {problem['msg']}")
            continue

        if entry.week_number in by_week:
            errors.append(f"Row {line}: week {entry.week_number} listed again, this row replaces the earlier one")
        by_week[entry.week_number] = entry

    if not by_week:
        raise ValidationError(
            "No schedule weeks could be read",
            detail="; ".join(errors[:5]) or f"{filename} has no data rows",
        )

    entries = [by_week[week] for week in sorted(by_week)]
    logger.info(f"📅 Parsed {len(entries)} week(s) from {filename} ({len(errors)} row issue(s))")
    return ParsedSchedule(entries=entries, errors=errors)
