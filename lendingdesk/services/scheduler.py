import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

REMINDER_JOB_ID = "send_due_reminders"
RETENTION_JOB_ID = "purge_returned_loans"


def build_scheduler(sweeper, reminder_hour: int = 10, cleanup_hour: int = 0) -> BackgroundScheduler:
    """Register the two sweeper passes as independent daily cron jobs. The scheduler is not started."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        sweeper.send_reminders,
        CronTrigger(hour=reminder_hour, minute=0),
        id=REMINDER_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        sweeper.purge_returned,
        CronTrigger(hour=cleanup_hour, minute=0),
        id=RETENTION_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    logger.info("Scheduled reminders at %02d:00 and cleanup at %02d:00", reminder_hour, cleanup_hour)
    return scheduler
