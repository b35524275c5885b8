"""
Background scheduler for billing and housekeeping jobs.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.exc import SQLAlchemyError

from daycare.core.database import AsyncSessionLocal
from daycare.services.audit_service import delete_old_audit_logs
from daycare.services.invoice_service import InvoiceService
from daycare.utils.timezone import LOCAL_TZ

logger = logging.getLogger(__name__)

AUDIT_RETENTION_DAYS = 365


class BillingScheduler:
    """Runs the nightly overdue sweep and weekly audit log cleanup."""

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone=LOCAL_TZ)
        self.is_running = False

    def start(self):
        if self.is_running:
            logger.warning("Billing scheduler is already running")
            return

        # Shortly after local midnight so "today" has rolled over
        self.scheduler.add_job(
            mark_overdue_invoices,
            CronTrigger(hour=0, minute=15, timezone=LOCAL_TZ),
            id="mark_overdue_invoices",
            name="Daily overdue invoice sweep",
            misfire_grace_time=3600,
            max_instances=1,
        )
        self.scheduler.add_job(
            cleanup_audit_logs,
            CronTrigger(day_of_week="sun", hour=3, minute=0, timezone=LOCAL_TZ),
            id="cleanup_audit_logs",
            name="Weekly audit log cleanup",
            misfire_grace_time=3600,
            max_instances=1,
        )

        self.scheduler.start()
        self.is_running = True
        logger.info("Billing scheduler started")

    def stop(self):
        if not self.is_running:
            return
        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Billing scheduler stopped")


async def mark_overdue_invoices() -> int:
    """Scheduled entry point for the overdue sweep."""
    async with AsyncSessionLocal() as db:
        try:
            return await InvoiceService(db).mark_overdue()
        except SQLAlchemyError as e:
            logger.error(f"Overdue invoice sweep failed: {e}")
            return 0


async def cleanup_audit_logs() -> int:
    async with AsyncSessionLocal() as db:
        try:
            return await delete_old_audit_logs(db, days=AUDIT_RETENTION_DAYS)
        except SQLAlchemyError as e:
            logger.error(f"Audit log cleanup failed: {e}")
            return 0


billing_scheduler = BillingScheduler()
