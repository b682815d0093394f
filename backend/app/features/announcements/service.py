"""
Announcements feature: storage of weekly announcement drafts.

The announcements table has UNIQUE (course_id, week_number); create_draft
surfaces a violation as ConflictError and leaves the decision to the caller.
"""

import logging
from datetime import datetime, timezone

from supabase import Client

from app.core.database import execute_query
from app.core.exceptions import ConflictError, NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

TABLE = "announcements"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AnnouncementService:
    """CRUD for announcement drafts; publishing is a human action."""

    def __init__(self, db: Client):
        self.db = db

    def get(self, announcement_id: str) -> dict:
        result = execute_query(
            "get_announcement",
            self.db.table(TABLE).select("*").eq("id", announcement_id).limit(1),
        )
        if not result.data:
            raise NotFoundError("Announcement", announcement_id)
        return result.data[0]

    def get_for_week(self, course_id: str, week_number: int) -> dict | None:
        result = execute_query(
            "get_announcement_for_week",
            self.db.table(TABLE)
            .select("*")
            .eq("course_id", course_id)
            .eq("week_number", week_number)
            .limit(1),
        )
        return result.data[0] if result.data else None

    def list_for_course(self, course_id: str, status: str | None = None) -> list[dict]:
        query = self.db.table(TABLE).select("*").eq("course_id", course_id)
        if status:
            query = query.eq("status", status)
        result = execute_query("list_announcements", query.order("week_number", desc=True))
        return result.data or []

    def create_draft(self, course_id: str, week_number: int, title: str, content: str) -> dict:
        """Insert a draft.

        Raises:
            ConflictError: A draft for (course_id, week_number) already exists.
        """
        result = execute_query(
            "create_announcement",
            self.db.table(TABLE).insert({
                "course_id": course_id,
                "week_number": week_number,
                "title": title,
                "content": content,
                "status": "draft",
            }),
        )
        if not result.data:
            raise UpstreamError("storage:create_announcement", "no row returned")
        return result.data[0]

    def update_draft(self, announcement_id: str, title: str | None = None, content: str | None = None) -> dict:
        """Human edit of a draft. Published announcements are frozen."""
        current = self.get(announcement_id)
        if current["status"] != "draft":
            raise ConflictError("Only drafts can be edited", detail=f"status={current['status']}")

        fields = {}
        if title is not None:
            if not title.strip():
                raise ValidationError("Title must not be empty")
            fields["title"] = title.strip()
        if content is not None:
            if not content.strip():
                raise ValidationError("Content must not be empty")
            fields["content"] = content.strip()
        if not fields:
            return current

        fields["updated_at"] = _now()
        result = execute_query(
            "update_announcement",
            self.db.table(TABLE).update(fields).eq("id", announcement_id),
        )
        logger.info(f"📝 Announcement {announcement_id} edited")
        return result.data[0] if result.data else {**current, **fields}

    def publish(self, announcement_id: str) -> dict:
        """draft -> published. Publishing twice returns the published record."""
        current = self.get(announcement_id)
        if current["status"] == "published":
            return current

        now = _now()
        result = execute_query(
            "publish_announcement",
            self.db.table(TABLE)
            .update({"status": "published", "published_at": now, "updated_at": now})
            .eq("id", announcement_id),
        )
        logger.info(f"📣 Announcement {announcement_id} published")
        return result.data[0] if result.data else {**current, "status": "published", "published_at": now}
