"""
Scheduler module - APScheduler setup for background cron jobs
"""
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import SUBSCRIPTION_REFRESH_HOUR, SUBSCRIPTION_REFRESH_MINUTE
from app.tasks.subscription_jobs import job_refresh_subscription_statuses

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def start_scheduler():
    """Register all cron jobs and start the scheduler."""

    # Recompute cached subscription statuses after midnight
    scheduler.add_job(
        job_refresh_subscription_statuses,
        trigger=CronTrigger(hour=SUBSCRIPTION_REFRESH_HOUR, minute=SUBSCRIPTION_REFRESH_MINUTE),
        id="refresh_subscription_statuses",
        name="Refresh subscription statuses",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
