"""
Reminder dispatch.

Sends eligible reminders one at a time through the notification port.
A failure on one candidate is recorded on its result and the loop moves
on; nothing here retries.
"""

import time

from app.features.bid_reminders.domain.models import (
    RESULT_FAILED,
    RESULT_SENT,
    RESULT_SKIPPED,
    RESULT_WOULD_SEND,
    SKIP_CLAIMED,
    DispatchResult,
    EligibleReminder,
)
from app.features.bid_reminders.ports import NotificationSender, ReminderStore
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ReminderDispatcher:
    """Sequential, failure-isolated sender for one run's eligible list."""

    def __init__(self, store: ReminderStore, sender: NotificationSender):
        self.store = store
        self.sender = sender

    async def dispatch(self, eligible: list[EligibleReminder], dry_run: bool) -> list[DispatchResult]:
        results: list[DispatchResult] = []

        for reminder in eligible:
            if dry_run:
                results.append(self._result(reminder, RESULT_WOULD_SEND))
                continue

            results.append(await self._dispatch_one(reminder))

        return results

    @staticmethod
    def _result(reminder: EligibleReminder, status: str, **extra) -> DispatchResult:
        return DispatchResult(
            candidate=reminder.candidate,
            status=status,
            to_email=reminder.to_email,
            subject=reminder.subject,
            **extra,
        )

    async def _dispatch_one(self, reminder: EligibleReminder) -> DispatchResult:
        candidate = reminder.candidate
        log = logger.bind(
            bid_id=candidate.bid_id,
            reminder_number=candidate.reminder_number,
            source=candidate.source,
        )

        if candidate.queue_entry_id is not None:
            try:
                claimed = await self.store.claim_queue_entry(candidate.queue_entry_id)
            except Exception as e:
                log.error("Could not claim queue entry", queue_id=candidate.queue_entry_id, error=str(e))
                return self._result(reminder, RESULT_FAILED, error=f"queue claim failed: {e}")

            if not claimed:
                log.info("Queue entry already claimed by another run", queue_id=candidate.queue_entry_id)
                return self._result(reminder, RESULT_SKIPPED, reason=SKIP_CLAIMED)

        start_time = time.time()
        try:
            outcome = await self.sender.send(
                reminder.to_email,
                reminder.subject,
                reminder.text_body,
                html_body=reminder.html_body,
                to_name=reminder.to_name,
            )
        except Exception as e:
            log.warning("Reminder send failed", error=str(e), error_type=type(e).__name__)
            return self._result(reminder, RESULT_FAILED, error=str(e) or type(e).__name__)

        if outcome is False or (isinstance(outcome, dict) and outcome.get("accepted") is False):
            log.warning("Reminder send rejected by notification service")
            return self._result(
                reminder, RESULT_FAILED, error="Notification service did not accept the message"
            )

        log.info("Reminder sent", duration_ms=round((time.time() - start_time) * 1000, 2))
        return self._result(reminder, RESULT_SENT)
