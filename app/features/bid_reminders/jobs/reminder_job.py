"""
Bid reminder background job.

Runs the reminder pipeline on a fixed interval inside the worker process.
Each iteration processes one capped batch; anything left over is picked
up by the next iteration.
"""

import asyncio
from datetime import UTC, datetime, timedelta

from app.config import settings
from app.db.pool import db_pool
from app.features.bid_reminders.services.reminder_service import (
    ReminderConfigurationError,
    ReminderServiceError,
    check_configuration,
    get_reminder_service,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ERROR_BACKOFF_SECONDS = 60


class BidReminderJobError(Exception):
    """Custom exception for bid reminder job operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class BidReminderJob:
    """
    Periodic automatic reminder run.

    Overlapping iterations in the same process are skipped; overlap across
    processes is handled by the queue claim in the dispatcher.
    """

    def __init__(self, interval_minutes: int | None = None):
        self.interval_minutes = interval_minutes or settings.REMINDER_JOB_INTERVAL_MINUTES
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.last_run_metrics: dict | None = None

    async def run_once(self) -> dict:
        """
        Run a single automatic reminder iteration.

        Returns:
            Dict: Run counts, or {"skipped": True, ...} when already running

        Raises:
            BidReminderJobError: If the service is not configured or the run
                could not read its candidates
        """
        if self.is_running:
            logger.warning("Bid reminder job already running, skipping this iteration")
            return {"skipped": True, "reason": "already_running"}

        try:
            check_configuration(require_email=True)
        except ReminderConfigurationError as e:
            logger.error("Bid reminder job refused, service not configured", error=str(e))
            raise BidReminderJobError(
                f"Bid reminder job not configured: {e}", operation="configure", recoverable=False
            ) from e

        started = datetime.now(UTC)
        try:
            self.is_running = True
            summary = await get_reminder_service().run()

            self.last_run_time = datetime.now(UTC)
            metrics = {
                "job_run": "bid_reminders",
                "start_time": started.isoformat(),
                "total_duration_seconds": round((self.last_run_time - started).total_seconds(), 2),
                "sent": summary.sent,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "processed": summary.processed,
            }
            self.last_run_metrics = metrics
            return metrics

        except ReminderServiceError as e:
            logger.error("Bid reminder job failed", error=str(e), operation=e.operation)
            raise BidReminderJobError(f"Bid reminder job failed: {e}", operation="run_once") from e

        finally:
            self.is_running = False

    def get_job_status(self) -> dict:
        return {
            "job_name": "bid_reminders",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_minutes": self.interval_minutes,
            "batch_size": settings.REMINDER_BATCH_SIZE,
            "last_run_metrics": self.last_run_metrics,
        }

    def health_check(self) -> dict:
        """Unhealthy once the job has not completed for two intervals."""
        now = datetime.now(UTC)
        overdue_threshold = timedelta(minutes=self.interval_minutes * 2)
        is_overdue = self.last_run_time is not None and (now - self.last_run_time) > overdue_threshold

        status = {
            "healthy": not is_overdue,
            "service": "bid_reminder_job",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "is_overdue": is_overdue,
        }
        if is_overdue:
            status["warning"] = (
                f"Job overdue by {(now - self.last_run_time).total_seconds() / 60:.1f} minutes"
            )
        return status


bid_reminder_job = BidReminderJob()


async def _ensure_pool() -> None:
    if not db_pool.is_ready:
        await db_pool.initialize()


async def run_bid_reminders_once() -> None:
    """Single automatic run, for cron-style invocation."""
    await _ensure_pool()
    try:
        metrics = await bid_reminder_job.run_once()
        logger.info("Bid reminder run finished", **metrics)
    finally:
        await db_pool.close()


async def start_bid_reminder_scheduler() -> None:
    """Run the reminder job forever at the configured interval."""
    await _ensure_pool()
    logger.info(
        "Starting bid reminder job scheduler",
        interval_minutes=bid_reminder_job.interval_minutes,
    )

    try:
        while True:
            try:
                metrics = await bid_reminder_job.run_once()
                if not metrics.get("skipped", False):
                    logger.info("Bid reminder job cycle completed", **metrics)

                await asyncio.sleep(bid_reminder_job.interval_minutes * 60)

            except Exception as e:
                logger.error(
                    "Error in bid reminder job scheduler", error=str(e), error_type=type(e).__name__
                )
                await asyncio.sleep(ERROR_BACKOFF_SECONDS)
    finally:
        await db_pool.close()


if __name__ == "__main__":
    asyncio.run(run_bid_reminders_once())
