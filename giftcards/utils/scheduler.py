"""
Background scheduler for automated gift card tasks.

Handles:
- Scheduled delivery of digital gift cards (daily at midnight UTC)
- Expiry reminder emails (daily at 9 AM UTC)
"""
import os
import logging
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Store Flask app reference for context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true.
    Only one process per deployment should run the scheduler.
    """
    global _scheduler, _flask_app

    # Store app reference for context in job functions
    _flask_app = app

    # Don't run scheduler in testing
    if app.config.get('TESTING'):
        logger.info('[Scheduler] Disabled in testing mode')
        return

    # Only enable scheduler in production or when explicitly enabled
    if not (os.getenv('FLASK_ENV') == 'production' or os.getenv('ENABLE_SCHEDULER') == 'true'):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    # Prevent multiple scheduler instances across forked workers
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return

    from apscheduler.schedulers.background import BackgroundScheduler
    from apscheduler.triggers.cron import CronTrigger

    _scheduler = BackgroundScheduler(
        timezone='UTC',
        job_defaults={
            'coalesce': True,  # Combine missed runs
            'max_instances': 1,  # Prevent concurrent runs
            'misfire_grace_time': 3600  # 1 hour grace period
        }
    )

    # Gift card delivery - Daily at midnight UTC
    _scheduler.add_job(
        run_scheduled_deliveries,
        trigger=CronTrigger(hour=0, minute=0),
        id='gift_card_delivery',
        name='Send gift cards scheduled for today',
        replace_existing=True
    )

    # Expiry reminders - Daily at 9 AM UTC
    _scheduler.add_job(
        run_expiry_reminders,
        trigger=CronTrigger(hour=9, minute=0),
        id='gift_card_expiry_reminders',
        name='Send gift card expiry reminders',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'

    logger.info('[Scheduler] Started with 2 scheduled jobs:')
    logger.info('  - Gift card delivery: Daily at 0:00 UTC')
    logger.info('  - Expiry reminders: Daily at 9:00 UTC')

    # Register shutdown
    import atexit
    atexit.register(shutdown_scheduler)


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def run_scheduled_deliveries():
    """Email digital gift cards whose delivery date is today."""
    global _flask_app

    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    logger.info('[Scheduler] Starting gift card delivery...')

    with _flask_app.app_context():
        from ..services.container import get_services

        try:
            result = get_services().scheduled.send_scheduled_deliveries()
            logger.info(
                f'[Scheduler] Gift card delivery complete: '
                f'{result["sent"]} sent, {result["failed"]} failed'
            )
        except Exception as e:
            logger.error(f'[Scheduler] Gift card delivery failed: {e}')


def run_expiry_reminders():
    """Remind holders of gift cards about to expire."""
    global _flask_app

    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    logger.info('[Scheduler] Starting gift card expiry reminders...')

    with _flask_app.app_context():
        from ..services.container import get_services

        try:
            result = get_services().scheduled.send_expiry_reminders()
            logger.info(
                f'[Scheduler] Expiry reminders complete: '
                f'{result["sent"]} sent, {result["failed"]} failed'
            )
        except Exception as e:
            logger.error(f'[Scheduler] Expiry reminders failed: {e}')


def get_next_run_times() -> dict:
    """Next run time per job (empty when the scheduler is not running)."""
    if not _scheduler:
        return {}

    next_runs = {}
    for job in _scheduler.get_jobs():
        next_run: Optional[datetime] = job.next_run_time
        next_runs[job.id] = {
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
        }
    return next_runs
