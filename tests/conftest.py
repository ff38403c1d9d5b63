import copy
from datetime import UTC, datetime, timedelta

import pytest

from app.features.bid_reminders.domain.models import (
    QUEUE_CANCELLED,
    QUEUE_PENDING,
    QUEUE_PROCESSING,
    BidInvitation,
    CadenceSettings,
    ReminderHistoryRecord,
    ReminderQueueEntry,
)
from app.services.sendgrid_service import SendGridError

# A Monday, outside daylight saving time
NOW = datetime(2025, 1, 13, 20, 0, tzinfo=UTC)


class FakeReminderStore:
    """In-memory ReminderStore. Reads hand out copies, like rows from the database."""

    def __init__(self, settings_row: dict | None = None):
        self.settings_row = settings_row
        self.invitations: dict[str, BidInvitation] = {}
        self.queue: dict[str, ReminderQueueEntry] = {}
        self.queue_errors: dict[str, str | None] = {}
        self.history: list[ReminderHistoryRecord] = []
        self.communications: list[dict] = []
        self.failing_bid_writes: set[str] = set()
        self.fail_communications = False

    # -- setup helpers -------------------------------------------------

    def add(self, invitation: BidInvitation) -> BidInvitation:
        self.invitations[invitation.id] = invitation
        return invitation

    def add_queue_entry(
        self, bid_id: str, reminder_number: int, scheduled_for: datetime, status: str = QUEUE_PENDING
    ) -> ReminderQueueEntry:
        entry = ReminderQueueEntry(
            id=f"q-{len(self.queue) + 1}",
            bid_id=bid_id,
            reminder_number=reminder_number,
            scheduled_for=scheduled_for,
            status=status,
        )
        self.queue[entry.id] = entry
        return entry

    def snapshot(self) -> dict:
        return {
            "invitations": copy.deepcopy(self.invitations),
            "queue": {key: entry.status for key, entry in self.queue.items()},
            "history": len(self.history),
            "communications": len(self.communications),
        }

    # -- ReminderStore -------------------------------------------------

    async def read_settings(self):
        return self.settings_row

    async def read_due_queue_entries(self, now, limit):
        due = sorted(
            (
                entry
                for entry in self.queue.values()
                if entry.status == QUEUE_PENDING and entry.scheduled_for <= now
            ),
            key=lambda entry: entry.scheduled_for,
        )[:limit]

        entries = []
        for entry in due:
            invitation = self.invitations.get(entry.bid_id)
            entries.append(
                ReminderQueueEntry(
                    id=entry.id,
                    bid_id=entry.bid_id,
                    reminder_number=entry.reminder_number,
                    scheduled_for=entry.scheduled_for,
                    status=entry.status,
                    invitation=copy.deepcopy(invitation) if invitation else None,
                )
            )
        return entries

    async def read_eligible_invitations(self, now, max_reminders, limit):
        rows = [
            invitation
            for invitation in self.invitations.values()
            if invitation.is_awaiting_response()
            and not invitation.reminders_paused
            and invitation.reminder_count < max_reminders
            and invitation.invitation_sent_at is not None
        ]
        rows.sort(key=lambda invitation: invitation.invitation_sent_at)
        return [copy.deepcopy(invitation) for invitation in rows[:limit]]

    async def read_invitations_by_ids(self, ids):
        return [copy.deepcopy(self.invitations[bid_id]) for bid_id in ids if bid_id in self.invitations]

    async def read_invitation(self, bid_id):
        invitation = self.invitations.get(bid_id)
        return copy.deepcopy(invitation) if invitation else None

    async def write_invitation_reminder_state(self, bid_id, fields):
        if bid_id in self.failing_bid_writes:
            raise RuntimeError("connection reset")
        for name, value in fields.items():
            setattr(self.invitations[bid_id], name, value)

    async def claim_queue_entry(self, entry_id):
        entry = self.queue[entry_id]
        if entry.status != QUEUE_PENDING:
            return False
        entry.status = QUEUE_PROCESSING
        return True

    async def write_queue_entry_status(self, entry_id, status, error_message=None):
        self.queue[entry_id].status = status
        self.queue_errors[entry_id] = error_message

    async def append_history_record(self, record):
        self.history.append(record)

    async def log_communication(self, invitation, subject, notes):
        if self.fail_communications:
            raise RuntimeError("communications table missing")
        self.communications.append({"bid_id": invitation.id, "subject": subject, "notes": notes})

    async def insert_queue_entry(self, invitation, reminder_number, scheduled_for):
        for entry in self.queue.values():
            if entry.bid_id == invitation.id and entry.reminder_number == reminder_number:
                return False
        self.add_queue_entry(invitation.id, reminder_number, scheduled_for)
        return True

    async def cancel_pending_queue_entries(self, bid_id):
        cancelled = 0
        for entry in self.queue.values():
            if entry.bid_id == bid_id and entry.status == QUEUE_PENDING:
                entry.status = QUEUE_CANCELLED
                cancelled += 1
        return cancelled

    async def set_reminders_paused(self, bid_id, paused):
        self.invitations[bid_id].reminders_paused = paused
        if paused:
            await self.cancel_pending_queue_entries(bid_id)

    async def read_dashboard_stats(self, now, settings: CadenceSettings):
        pending = [i for i in self.invitations.values() if i.is_awaiting_response()]
        return {
            "total_pending": len(pending),
            "queue_ready": sum(
                1
                for entry in self.queue.values()
                if entry.status == QUEUE_PENDING and entry.scheduled_for <= now
            ),
            "sent_this_week": sum(1 for record in self.history if record.status == "sent"),
        }


class RecordingSender:
    """NotificationSender that records messages and fails for chosen recipients."""

    def __init__(self, fail_for: set[str] | None = None):
        self.fail_for = fail_for or set()
        self.sent: list[dict] = []

    async def send(self, to, subject, body, *, html_body=None, to_name=None):
        if to in self.fail_for:
            raise SendGridError("SendGrid API error: 500 - upstream", status_code=500)
        self.sent.append(
            {"to": to, "subject": subject, "body": body, "html_body": html_body, "to_name": to_name}
        )
        return {"accepted": True, "status_code": 202, "message_id": f"msg-{len(self.sent)}"}


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_invitation(now):
    """Build a complete, invited BidInvitation sent `days_ago` days before now."""

    def _make(bid_id: str = "bid-1", days_ago: float = 3, **overrides) -> BidInvitation:
        values = {
            "id": bid_id,
            "status": "invited",
            "invitation_sent_at": now - timedelta(days=days_ago),
            "subcontractor_id": f"sub-{bid_id}",
            "subcontractor_email": f"{bid_id}@subs.example.com",
            "subcontractor_name": "Acme Drywall",
            "bid_item_id": f"item-{bid_id}",
            "bid_item_description": "Interior drywall",
            "project_id": "proj-1",
            "project_name": "Harbor Tower",
        }
        values.update(overrides)
        return BidInvitation(**values)

    return _make


@pytest.fixture
def store():
    return FakeReminderStore()


@pytest.fixture
def sender():
    return RecordingSender()
