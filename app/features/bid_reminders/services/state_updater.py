"""
Run outcome persistence and reminder audit trail.

Writes each dispatch result back to the store on its own: invitation
bookkeeping, queue entry status, and an append-only reminder_history row.
A write failure turns that one result into a failure and the remaining
results are still committed.
"""

from datetime import datetime

from app.features.bid_reminders.domain.models import (
    QUEUE_CANCELLED,
    QUEUE_FAILED,
    QUEUE_SENT,
    RESULT_FAILED,
    RESULT_SENT,
    RESULT_SKIPPED,
    SKIP_CLAIMED,
    DispatchResult,
    ReminderHistoryRecord,
    ReminderRunSummary,
)
from app.features.bid_reminders.ports import ReminderStore
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ReminderStateUpdater:
    """Commits dispatch results and aggregates the run summary."""

    def __init__(self, store: ReminderStore):
        self.store = store

    async def commit(
        self,
        results: list[DispatchResult],
        now: datetime,
        *,
        dry_run: bool = False,
        reminder_type: str = "automatic",
    ) -> ReminderRunSummary:
        summary = ReminderRunSummary()

        for result in results:
            if dry_run:
                summary.record(result)
                continue

            try:
                await self._commit_one(result, now, reminder_type)
            except Exception as e:
                logger.error(
                    "Failed to commit reminder outcome",
                    bid_id=result.candidate.bid_id,
                    outcome=result.status,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.error = f"commit failed: {e}"
                result.status = RESULT_FAILED

            summary.record(result)

        logger.info(
            "Reminder outcomes committed",
            dry_run=dry_run,
            sent=summary.sent,
            failed=summary.failed,
            skipped=summary.skipped,
            would_send=summary.would_send,
        )
        return summary

    def _history(self, result: DispatchResult, now: datetime, reminder_type: str) -> ReminderHistoryRecord:
        invitation = result.candidate.invitation
        return ReminderHistoryRecord(
            bid_id=invitation.id,
            reminder_number=result.candidate.reminder_number,
            status=result.status,
            to_email=result.to_email,
            reminder_type=reminder_type,
            subcontractor_id=invitation.subcontractor_id,
            project_id=invitation.project_id,
            bid_item_id=invitation.bid_item_id,
            subject=result.subject,
            error_message=result.error or result.reason,
            created_at=now,
        )

    async def _commit_one(self, result: DispatchResult, now: datetime, reminder_type: str) -> None:
        candidate = result.candidate
        queue_id = candidate.queue_entry_id

        if result.status == RESULT_SENT:
            # Delivery is recorded before the invitation bookkeeping
            if queue_id:
                await self.store.write_queue_entry_status(queue_id, QUEUE_SENT)
            await self.store.append_history_record(self._history(result, now, reminder_type))
            await self.store.write_invitation_reminder_state(
                candidate.bid_id,
                {
                    "reminder_count": candidate.reminder_number,
                    "last_reminder_at": now,
                    "next_reminder_at": None,
                },
            )
            await self._log_communication(result)

        elif result.status == RESULT_FAILED:
            await self.store.append_history_record(self._history(result, now, reminder_type))
            if queue_id:
                await self.store.write_queue_entry_status(queue_id, QUEUE_FAILED, result.error)

        elif result.status == RESULT_SKIPPED:
            await self.store.append_history_record(self._history(result, now, reminder_type))
            # A claimed entry belongs to the run that claimed it
            if queue_id and result.reason != SKIP_CLAIMED:
                await self.store.write_queue_entry_status(queue_id, QUEUE_CANCELLED, result.reason)

    async def _log_communication(self, result: DispatchResult) -> None:
        """Best effort: a missing communications row never fails a sent reminder."""
        invitation = result.candidate.invitation
        ordinal = result.candidate.reminder_number
        try:
            await self.store.log_communication(
                invitation,
                subject=f"Automated reminder #{ordinal} sent",
                notes=f"Automated follow-up reminder for {invitation.bid_item_description or 'bid request'}",
            )
        except Exception as e:
            logger.warning(
                "Could not log reminder communication",
                bid_id=invitation.id,
                error=str(e),
            )
