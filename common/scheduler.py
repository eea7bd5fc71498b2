"""
Background task scheduler for audit log retention.
Uses APScheduler to run tasks in the background without requiring external services.
"""
import logging
import atexit
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from django.core.management import call_command
from django.utils import timezone

from core.exceptions import ValidationError
from core.validators import ScheduleValidator

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_TIME = '02:00'

# Global scheduler instance
scheduler = None


def cleanup_audit_logs_job():
    """
    Background job that prunes audit logs older than the retention window.
    Skipped when the scheduled_cleanup_enabled setting is off.
    """
    from app_settings.services import get_setting

    if not get_setting('scheduled_cleanup_enabled', True):
        logger.info("Scheduled audit log cleanup is disabled, skipping")
        return

    try:
        logger.info("Starting scheduled audit log cleanup...")
        call_command('cleanup_audit_logs')
        logger.info("Scheduled audit log cleanup completed successfully")
    except Exception as e:
        logger.error(f"Error in scheduled audit log cleanup: {str(e)}", exc_info=True)


def get_cleanup_schedule():
    """Return (hour, minute) from the cleanup_schedule_time setting, falling back to 02:00"""
    from app_settings.services import get_setting

    value = get_setting('cleanup_schedule_time', DEFAULT_CLEANUP_TIME)
    try:
        return ScheduleValidator.parse_time(value)
    except ValidationError as e:
        logger.warning(f"{e.message} Falling back to {DEFAULT_CLEANUP_TIME}")
        return ScheduleValidator.parse_time(DEFAULT_CLEANUP_TIME)


def start_scheduler():
    """
    Initialize and start the background scheduler.
    This should be called once when Django starts.
    """
    global scheduler
    
    if scheduler is not None and scheduler.running:
        logger.warning("Scheduler is already running")
        return
    
    try:
        scheduler = BackgroundScheduler()
        
        # Get timezone from Django settings
        tz = timezone.get_current_timezone()
        hour, minute = get_cleanup_schedule()
        
        scheduler.add_job(
            cleanup_audit_logs_job,
            trigger=CronTrigger(
                hour=hour,
                minute=minute,
                timezone=tz
            ),
            id='cleanup_audit_logs',
            name='Clean Up Expired Audit Logs',
            replace_existing=True,
            max_instances=1,  # Prevent overlapping runs
            coalesce=True  # Combine multiple pending executions into one
        )
        
        scheduler.start()
        logger.info("Background scheduler started successfully")
        logger.info(f"Audit log cleanup scheduled daily at {hour:02d}:{minute:02d} ({tz})")
        
        atexit.register(lambda: stop_scheduler())
        
    except Exception as e:
        logger.error(f"Failed to start scheduler: {str(e)}", exc_info=True)
        scheduler = None


def stop_scheduler():
    """
    Stop the background scheduler.
    Should be called when Django shuts down.
    """
    global scheduler
    
    if scheduler is not None and scheduler.running:
        try:
            scheduler.shutdown(wait=True)
            logger.info("Background scheduler stopped")
        except Exception as e:
            logger.error(f"Error stopping scheduler: {str(e)}", exc_info=True)
        finally:
            scheduler = None
