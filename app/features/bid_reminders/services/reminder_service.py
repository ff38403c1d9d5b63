"""
Bid reminder run orchestration.

One run: resolve settings -> gather candidates -> eligibility -> dispatch
-> commit. Everything is awaited in sequence; the run returns the
aggregate summary once its capped batch is done.

Also hosts the per-invitation operations that feed the scheduler:
pre-scheduling the next reminder, pausing/resuming, dashboard counts.
"""

from datetime import UTC, datetime
from typing import Any

from app.config import settings as app_settings
from app.db.pool import db_pool
from app.features.bid_reminders.domain.cadence import next_send_window, reminder_due_at
from app.features.bid_reminders.domain.models import (
    SKIP_MAX_REMINDERS,
    SKIP_NOT_INVITED,
    SKIP_PAUSED,
    DispatchResult,
    ReminderRunSummary,
)
from app.features.bid_reminders.ports import NotificationSender, ReminderStore
from app.features.bid_reminders.repository.reminder_repository import reminder_repository
from app.features.bid_reminders.services.candidate_gatherer import CandidateGatherer, GatherMode
from app.features.bid_reminders.services.dispatcher import ReminderDispatcher
from app.features.bid_reminders.services.eligibility import filter_candidates
from app.features.bid_reminders.services.settings_resolver import SettingsResolver
from app.features.bid_reminders.services.state_updater import ReminderStateUpdater
from app.infrastructure.observability.logging import get_logger
from app.services.sendgrid_service import sendgrid_service

logger = get_logger(__name__)


class ReminderServiceError(Exception):
    """Custom exception for reminder service operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class ReminderConfigurationError(ReminderServiceError):
    """Email credentials or the database are not available."""


class InvitationNotFoundError(ReminderServiceError):
    """The referenced bid invitation does not exist."""


def check_configuration(require_email: bool = True) -> None:
    """
    Raise before any processing if a collaborator is unconfigured.

    Args:
        require_email: Also require the SendGrid key (runs need it, reads don't)

    Raises:
        ReminderConfigurationError: Missing SendGrid key, DB URL, or pool
    """
    if require_email and not app_settings.has_sendgrid_credentials():
        raise ReminderConfigurationError("SendGrid API key not configured", operation="configure")
    if not app_settings.has_database():
        raise ReminderConfigurationError("Database not configured", operation="configure")
    if not db_pool.is_ready:
        raise ReminderConfigurationError("Database pool not initialized", operation="configure")


def summary_message(summary: ReminderRunSummary, dry_run: bool) -> str:
    if summary.processed == 0:
        return "No reminders to send"
    prefix = "Dry run: evaluated" if dry_run else "Processed"
    return f"{prefix} {summary.processed} reminders"


class ReminderService:
    """Runs the reminder pipeline against a store and a notification sender."""

    def __init__(
        self,
        store: ReminderStore,
        sender: NotificationSender,
        *,
        batch_size: int = 50,
        signature: str | None = None,
    ):
        self.store = store
        self.settings_resolver = SettingsResolver(store)
        self.gatherer = CandidateGatherer(store, batch_size=batch_size)
        self.dispatcher = ReminderDispatcher(store, sender)
        self.state_updater = ReminderStateUpdater(store)
        self.signature = signature

    async def run(
        self,
        manual_bid_ids: list[str] | None = None,
        dry_run: bool = False,
        now: datetime | None = None,
    ) -> ReminderRunSummary:
        """
        Execute one reminder run.

        Args:
            manual_bid_ids: Explicit bids to remind; None/empty means automatic batch
            dry_run: Evaluate and report without sending or writing
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            ReminderRunSummary: counts plus per-item details

        Raises:
            ReminderServiceError: If candidates cannot be read at all
        """
        now = now or datetime.now(UTC)
        mode = GatherMode.manual(manual_bid_ids) if manual_bid_ids else GatherMode.automatic()

        logger.info(
            "Starting reminder run",
            mode=mode.reminder_type,
            dry_run=dry_run,
            manual_count=len(mode.manual_ids),
        )

        cadence = await self.settings_resolver.resolve()

        try:
            candidates = await self.gatherer.gather(mode, cadence, now)
        except Exception as e:
            logger.error("Failed to gather reminder candidates", error=str(e), error_type=type(e).__name__)
            raise ReminderServiceError(
                f"Failed to gather reminder candidates: {e}", operation="gather"
            ) from e

        eligible, skipped = filter_candidates(candidates, cadence, self.signature, now)

        results = [DispatchResult.skipped(item) for item in skipped]
        results += await self.dispatcher.dispatch(eligible, dry_run)

        summary = await self.state_updater.commit(
            results, now, dry_run=dry_run, reminder_type=mode.reminder_type
        )

        logger.info(
            "Reminder run completed",
            mode=mode.reminder_type,
            dry_run=dry_run,
            candidates=len(candidates),
            sent=summary.sent,
            failed=summary.failed,
            skipped=summary.skipped,
            would_send=summary.would_send,
        )
        return summary

    async def schedule_next_reminder(self, bid_id: str, now: datetime | None = None) -> dict[str, Any]:
        """
        Compute and store when the next reminder for a bid is due.

        With auto-send enabled the reminder is also placed on the queue,
        moved into the allowed send window. The queue's unique
        (bid_id, reminder_number) key makes repeated calls harmless.

        Raises:
            InvitationNotFoundError: If the bid does not exist
        """
        now = now or datetime.now(UTC)
        invitation = await self.store.read_invitation(bid_id)
        if invitation is None:
            raise InvitationNotFoundError(f"Bid {bid_id} not found", operation="schedule")

        if not invitation.is_awaiting_response():
            return {"bid_id": bid_id, "scheduled": False, "reason": SKIP_NOT_INVITED}
        if invitation.reminders_paused:
            return {"bid_id": bid_id, "scheduled": False, "reason": SKIP_PAUSED}

        cadence = await self.settings_resolver.resolve()
        due = reminder_due_at(invitation, cadence)

        if due is None:
            await self.store.write_invitation_reminder_state(bid_id, {"next_reminder_at": None})
            cancelled = await self.store.cancel_pending_queue_entries(bid_id)
            logger.info("No further reminders for bid", bid_id=bid_id, cancelled_entries=cancelled)
            return {"bid_id": bid_id, "scheduled": False, "reason": SKIP_MAX_REMINDERS}

        ordinal, due_at = due
        queued = False
        next_at = due_at

        if cadence.auto_send_enabled:
            next_at = next_send_window(due_at, cadence)
            queued = await self.store.insert_queue_entry(invitation, ordinal, next_at)
            if not queued:
                logger.info(
                    "Reminder already queued for this ordinal",
                    bid_id=bid_id,
                    reminder_number=ordinal,
                )

        await self.store.write_invitation_reminder_state(bid_id, {"next_reminder_at": next_at})

        logger.info(
            "Next reminder scheduled",
            bid_id=bid_id,
            reminder_number=ordinal,
            next_reminder_at=next_at.isoformat(),
            queued=queued,
        )
        return {
            "bid_id": bid_id,
            "scheduled": True,
            "reminder_number": ordinal,
            "next_reminder_at": next_at,
            "queued": queued,
        }

    async def pause_reminders(self, bid_id: str) -> dict[str, Any]:
        """Stop reminders for a bid and cancel its pending queue entries."""
        return await self._set_paused(bid_id, True)

    async def resume_reminders(self, bid_id: str) -> dict[str, Any]:
        return await self._set_paused(bid_id, False)

    async def _set_paused(self, bid_id: str, paused: bool) -> dict[str, Any]:
        invitation = await self.store.read_invitation(bid_id)
        if invitation is None:
            raise InvitationNotFoundError(f"Bid {bid_id} not found", operation="pause")

        await self.store.set_reminders_paused(bid_id, paused)
        return {"bid_id": bid_id, "reminders_paused": paused}

    async def dashboard_stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Dashboard counts plus the cadence they were computed with."""
        now = now or datetime.now(UTC)
        cadence = await self.settings_resolver.resolve()
        stats = await self.store.read_dashboard_stats(now, cadence)
        return {
            "stats": stats,
            "cadence": {
                "thresholds_days": list(cadence.thresholds),
                "max_reminders": cadence.max_reminders,
                "auto_send_enabled": cadence.auto_send_enabled,
            },
        }


def get_reminder_service() -> ReminderService:
    """Default wiring: Postgres repository + SendGrid."""
    return ReminderService(
        reminder_repository,
        sendgrid_service,
        batch_size=app_settings.REMINDER_BATCH_SIZE,
        signature=app_settings.REMINDER_SENDER_COMPANY,
    )
