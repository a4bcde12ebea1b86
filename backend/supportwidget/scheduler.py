"""APScheduler configuration for periodic visitor-session maintenance."""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import logging

from supportwidget.config import settings

logger = logging.getLogger(__name__)

# Create scheduler instance
scheduler = AsyncIOScheduler()


async def sweep_expired_sessions() -> int:
    """
    Deactivate every expired visitor session across all tenants.
    Called by APScheduler; lookups already ignore expired rows, this only
    keeps the is_active flag honest.
    """
    # Import here to avoid circular imports
    from supportwidget.database import AsyncSessionLocal
    from supportwidget.repositories.sql import SqlVisitorSessionRepository
    from supportwidget.services.sessions import VisitorSessionManager

    try:
        async with AsyncSessionLocal() as db:
            manager = VisitorSessionManager(SqlVisitorSessionRepository(db))
            return await manager.sweep_expired()
    except Exception as e:
        logger.error(f"Error in session sweep job: {e}", exc_info=True)
        return 0


def start_scheduler():
    """
    Initialize and start the APScheduler.

    Jobs:
    - Session sweep: every SESSION_SWEEP_INTERVAL_MINUTES (0 disables)
    """
    if scheduler.running:
        logger.info("Scheduler already running")
        return

    interval = settings.SESSION_SWEEP_INTERVAL_MINUTES
    if interval <= 0:
        logger.info("Session sweep disabled (SESSION_SWEEP_INTERVAL_MINUTES=0)")
        return

    scheduler.add_job(
        sweep_expired_sessions,
        trigger=IntervalTrigger(minutes=interval),
        id="visitor_session_sweep",
        name="Visitor Session Sweep",
        replace_existing=True,
        max_instances=1
    )
    logger.info(f"Scheduled: Visitor Session Sweep (every {interval} min)")

    scheduler.start()
    logger.info("APScheduler started")


def stop_scheduler():
    """Shut the scheduler down without waiting for running jobs."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("APScheduler stopped")
