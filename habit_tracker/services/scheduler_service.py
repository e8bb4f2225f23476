"""
Background scheduler for automatic snapshot backups.

The job only reads the habit store to write a backup file; it never
applies check-ins or touches scoring state.
"""
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from habit_tracker.database import SessionLocal
from habit_tracker.models import Settings
from habit_tracker.repositories.settings_repository import SettingsRepository
from habit_tracker.services.date_service import DateService
from habit_tracker.services.snapshot_service import SnapshotService

logger = logging.getLogger("habit_tracker.scheduler")

scheduler = AsyncIOScheduler()


def is_backup_due(settings: Settings, now: datetime) -> bool:
    """
    Whether the daily auto-backup should run at ``now``.

    Runs once per calendar day, at or after backup_time.
    """
    if not settings.auto_backup_enabled:
        return False

    try:
        hour, minute = DateService.parse_time(settings.backup_time or "03:00")
    except ValueError:
        logger.warning(f"Invalid backup_time {settings.backup_time!r}, using 03:00")
        hour, minute = 3, 0

    if now.hour * 60 + now.minute < hour * 60 + minute:
        return False

    last: Optional[datetime] = settings.last_backup_date
    return last is None or last.date() < now.date()


async def run_auto_backup():
    """Create the daily backup once its time has come"""
    db = SessionLocal()
    try:
        settings = SettingsRepository.get(db)
        if not is_backup_due(settings, datetime.now()):
            return

        backup = SnapshotService(db).create_backup(backup_type="auto")
        logger.info(f"Auto-backup successful: {backup['filename']}")

    except Exception as e:
        logger.error(f"Scheduler Error (Backup): {e}")
    finally:
        db.close()


def start_scheduler():
    """Start the scheduler with a once-a-minute backup check"""
    if not scheduler.running:
        scheduler.add_job(
            run_auto_backup,
            CronTrigger(minute='*'),
            id='auto_backup',
            replace_existing=True
        )
        scheduler.start()
        logger.info(f"Scheduler started. Jobs: {[job.id for job in scheduler.get_jobs()]}")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
