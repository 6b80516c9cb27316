"""
Background job definitions using APScheduler.

Jobs include:
- Overdue approval escalation
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.config import settings
from src.db import get_db_context
from src.services.approvals import escalate_overdue
from src.services.errors import PersistenceError

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def overdue_approvals_job():
    """Escalate pending approvals that have passed their SLA."""
    logger.debug("Running overdue approvals job")
    try:
        async with get_db_context() as db:
            escalated = await escalate_overdue(db)
            if escalated:
                logger.info(f"Overdue approvals job: escalated {escalated} approvals")
    except PersistenceError as e:
        logger.error(f"Overdue approvals job error: {e}")


def setup_scheduler():
    """
    Configure and add all scheduled jobs.

    Called during application startup.
    """
    scheduler.add_job(
        overdue_approvals_job,
        trigger=IntervalTrigger(minutes=settings.overdue_check_interval_minutes),
        id="overdue_approvals",
        name="Escalate overdue commission approvals",
        replace_existing=True,
    )

    logger.info("Scheduler configured with jobs")
