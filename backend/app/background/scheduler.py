"""
Background scheduler for the weekly Conductor run.

Uses APScheduler to draft announcements for every course once a week
(CONDUCTOR_DAY_OF_WEEK at CONDUCTOR_HOUR:CONDUCTOR_MINUTE, TIMEZONE).
The Conductor is blocking, so the job hands it to a worker thread.
"""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import get_settings
from app.core.cache import LookupCache
from app.core.database import get_supabase_admin_client
from app.core.llm_provider import TextGenerator
from app.features.announcements.conductor import Conductor
from app.features.announcements.schedules import ScheduleRepository
from app.features.announcements.service import AnnouncementService

logger = logging.getLogger(__name__)

CONDUCTOR_JOB_ID = "weekly_conductor_job"

# Singleton scheduler instance
scheduler = AsyncIOScheduler(timezone=get_settings().TIMEZONE)


def build_conductor(cache: LookupCache) -> Conductor:
    db = get_supabase_admin_client()
    return Conductor(
        db,
        schedules=ScheduleRepository(db, cache),
        announcements=AnnouncementService(db),
        generator=TextGenerator(),
    )


async def run_weekly_conductor(cache: LookupCache):
    """Callback for the APScheduler weekly job."""
    logger.info("⏰ Executing weekly Conductor run...")
    try:
        conductor = build_conductor(cache)
        results = await asyncio.to_thread(conductor.run_all)
    except Exception as e:
        logger.error(f"❌ Weekly Conductor run failed: {e}", exc_info=True)
        return

    failed = [r for r in results if not r.success]
    for result in failed:
        logger.warning(f"⚠️ Conductor skipped course {result.course_id}: {result.error}")
    logger.info(f"✅ Weekly Conductor run completed ({len(results) - len(failed)}/{len(results)} courses)")


def build_trigger() -> CronTrigger:
    settings = get_settings()
    return CronTrigger(
        day_of_week=settings.CONDUCTOR_DAY_OF_WEEK,
        hour=settings.CONDUCTOR_HOUR,
        minute=settings.CONDUCTOR_MINUTE,
        timezone=settings.TIMEZONE,
    )


def init_scheduler(cache: LookupCache):
    """Register the weekly job and start the scheduler.

    Called during FastAPI lifespan startup.
    """
    settings = get_settings()
    if not settings.CONDUCTOR_ENABLED:
        logger.info("📅 Conductor disabled, scheduler not started")
        return

    scheduler.add_job(
        func=run_weekly_conductor,
        trigger=build_trigger(),
        id=CONDUCTOR_JOB_ID,
        args=[cache],
        replace_existing=True,
    )
    scheduler.start()

    for job in scheduler.get_jobs():
        logger.info(f"📅 Scheduler started: {job.id} next run at {job.next_run_time}")


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("📅 Scheduler shut down.")
