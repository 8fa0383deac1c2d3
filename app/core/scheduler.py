"""
Application Scheduler - APScheduler Integration

Manages scheduled tasks for the FastAPI application.
Currently a single daily job: reminders for assignments stuck in a stage.
"""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import settings

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler(
    timezone=settings.SCHEDULER_TIMEZONE,
    job_defaults={
        'coalesce': True,  # Combine multiple missed executions into one
        'max_instances': 1,  # Only one instance of each job at a time
        'misfire_grace_time': 3600  # Job can run up to 1 hour late
    }
)


def scheduler_listener(event):
    """
    Listener for scheduler events (executed jobs, errors).

    Args:
        event: APScheduler event object
    """
    if event.exception:
        logger.error(
            f"Job '{event.job_id}' failed with exception: {event.exception}",
            exc_info=True
        )
    else:
        logger.info(f"Job '{event.job_id}' executed successfully")


scheduler.add_listener(scheduler_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)


async def run_stage_reminders():
    """
    Scheduled task: notify client and agency users about assignments that
    have not moved for STAGE_REMINDER_DAYS.
    """
    from app.db.session import AsyncSessionLocal
    from app.services.notification_service import send_stage_reminders

    logger.info("Running stage reminders...")

    async with AsyncSessionLocal() as db:
        try:
            count = await send_stage_reminders(db, settings.STAGE_REMINDER_DAYS)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Stage reminders failed: {e}", exc_info=True)
            raise

    logger.info(f"Stage reminders sent for {count} assignment(s)")
    return {"reminded": count}


def setup_jobs():
    """
    Setup all scheduled jobs.

    Called during application startup to configure periodic tasks.
    """
    hour_str = ','.join(map(str, settings.REMINDER_HOURS))

    scheduler.add_job(
        run_stage_reminders,
        CronTrigger(hour=hour_str, minute=0),
        id='stage_reminders_daily',
        name='Stuck stage reminders (daily)',
        replace_existing=True
    )
    logger.info(f"Added: stage_reminders_daily (Hours: {hour_str} {settings.SCHEDULER_TIMEZONE})")


def start_scheduler():
    """
    Start the scheduler.

    Called during application startup (in lifespan).
    """
    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")
        return

    if not scheduler.running:
        setup_jobs()
        scheduler.start()
        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job {job.id}: next run {job.next_run_time}")
    else:
        logger.warning("Scheduler already running")


def stop_scheduler():
    """
    Stop the scheduler.

    Called during application shutdown (in lifespan).
    """
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")


def get_scheduler_status() -> dict:
    """
    Get scheduler status and job information.

    Returns:
        Dict with scheduler status, jobs, and next run times
    """
    jobs_info = []
    for job in scheduler.get_jobs():
        # Jobs added before start() have no next_run_time yet
        next_run = getattr(job, 'next_run_time', None)
        jobs_info.append({
            'id': job.id,
            'name': job.name,
            'next_run_time': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger),
        })
    return {
        'running': scheduler.running,
        'total_jobs': len(jobs_info),
        'jobs': jobs_info
    }
