"""
Collaborator ports consumed by the reminder run.

The Postgres repository implements ReminderStore and the SendGrid client
implements NotificationSender; tests plug in in-memory versions.
"""

from datetime import datetime
from typing import Any, Protocol

from app.features.bid_reminders.domain.models import (
    BidInvitation,
    CadenceSettings,
    ReminderHistoryRecord,
    ReminderQueueEntry,
)


class ReminderStore(Protocol):
    async def read_settings(self) -> dict[str, Any] | None: ...

    async def read_due_queue_entries(self, now: datetime, limit: int) -> list[ReminderQueueEntry]: ...

    async def read_eligible_invitations(
        self, now: datetime, max_reminders: int, limit: int
    ) -> list[BidInvitation]: ...

    async def read_invitations_by_ids(self, ids: list[str]) -> list[BidInvitation]: ...

    async def read_invitation(self, bid_id: str) -> BidInvitation | None: ...

    async def write_invitation_reminder_state(self, bid_id: str, fields: dict[str, Any]) -> None: ...

    async def claim_queue_entry(self, entry_id: str) -> bool: ...

    async def write_queue_entry_status(
        self, entry_id: str, status: str, error_message: str | None = None
    ) -> None: ...

    async def append_history_record(self, record: ReminderHistoryRecord) -> None: ...

    async def log_communication(self, invitation: BidInvitation, subject: str, notes: str) -> None: ...

    async def insert_queue_entry(
        self, invitation: BidInvitation, reminder_number: int, scheduled_for: datetime
    ) -> bool: ...

    async def cancel_pending_queue_entries(self, bid_id: str) -> int: ...

    async def set_reminders_paused(self, bid_id: str, paused: bool) -> None: ...

    async def read_dashboard_stats(
        self, now: datetime, settings: CadenceSettings
    ) -> dict[str, int]: ...


class NotificationSender(Protocol):
    async def send(
        self,
        to: str,
        subject: str,
        body: str,
        *,
        html_body: str | None = None,
        to_name: str | None = None,
    ) -> Any: ...
