"""
Domain models for the bid reminder feature.

Plain dataclasses shared by the repository, the run pipeline and the API
layer. Cadence decisions live in cadence.py, not here.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

# Bid invitation lifecycle
BID_STATUS_INVITED = "invited"

# Reminder queue entry statuses
QUEUE_PENDING = "pending"
QUEUE_PROCESSING = "processing"
QUEUE_SENT = "sent"
QUEUE_FAILED = "failed"
QUEUE_CANCELLED = "cancelled"

# Candidate sources
SOURCE_QUEUED = "queued"
SOURCE_COMPUTED = "computed"

# Dispatch / history outcomes
RESULT_SENT = "sent"
RESULT_FAILED = "failed"
RESULT_SKIPPED = "skipped"
RESULT_WOULD_SEND = "would_send"

# Skip reasons
SKIP_MISSING_CONTACT = "missing_contact"
SKIP_PAUSED = "reminders_paused"
SKIP_NOT_INVITED = "not_awaiting_response"
SKIP_ALREADY_REMINDED = "already_reminded"
SKIP_MAX_REMINDERS = "max_reminders_reached"
SKIP_CLAIMED = "claimed_by_another_run"
SKIP_OUT_OF_SEQUENCE = "out_of_sequence"
SKIP_NOT_YET_DUE = "not_yet_due"

DEFAULT_SUBJECT_TEMPLATE = "Reminder: Bid Request for {{project_name}}"
DEFAULT_MESSAGE_TEMPLATE = (
    "This is a friendly reminder about our bid request for {{project_name}}. "
    "We would appreciate receiving your proposal at your earliest convenience."
)


@dataclass(frozen=True, slots=True)
class CadenceSettings:
    """Process-wide reminder cadence, read once at the start of a run."""

    first_reminder_days: int = 3
    second_reminder_days: int = 5
    final_reminder_days: int = 7
    max_reminders: int = 3
    auto_send_enabled: bool = False
    send_time: time = time(9, 0)
    timezone: str = "America/Los_Angeles"
    send_days: tuple[int, ...] = (1, 2, 3, 4, 5)  # 0 = Sunday
    subject_template: str = DEFAULT_SUBJECT_TEMPLATE
    message_template: str = DEFAULT_MESSAGE_TEMPLATE

    @property
    def thresholds(self) -> tuple[int, int, int]:
        return (self.first_reminder_days, self.second_reminder_days, self.final_reminder_days)

    def threshold_for(self, ordinal: int) -> int | None:
        """Days after invitation for the given 1-based ordinal, None if unreachable."""
        if ordinal < 1 or ordinal > self.max_reminders or ordinal > len(self.thresholds):
            return None
        return self.thresholds[ordinal - 1]


@dataclass(slots=True)
class BidInvitation:
    """A bids row joined with its subcontractor, bid item and project."""

    id: str
    status: str
    reminder_count: int = 0
    reminders_paused: bool = False
    invitation_sent_at: datetime | None = None
    last_reminder_at: datetime | None = None
    next_reminder_at: datetime | None = None

    subcontractor_id: str | None = None
    subcontractor_email: str | None = None
    subcontractor_name: str | None = None
    bid_item_id: str | None = None
    bid_item_description: str | None = None
    bid_due_date: date | None = None
    project_id: str | None = None
    project_name: str | None = None

    def is_awaiting_response(self) -> bool:
        return self.status == BID_STATUS_INVITED

    def has_contact(self) -> bool:
        """Recipient address and parent project are both known."""
        return bool(self.subcontractor_email) and bool(self.project_id) and bool(self.project_name)


@dataclass(slots=True)
class ReminderQueueEntry:
    """A reminder_queue row, with the invitation it points at."""

    id: str
    bid_id: str
    reminder_number: int
    scheduled_for: datetime
    status: str = QUEUE_PENDING
    invitation: BidInvitation | None = None


@dataclass(slots=True)
class ReminderHistoryRecord:
    """Append-only reminder_history row."""

    bid_id: str
    reminder_number: int
    status: str
    to_email: str | None
    reminder_type: str = "automatic"
    channel: str = "email"
    subcontractor_id: str | None = None
    project_id: str | None = None
    bid_item_id: str | None = None
    subject: str | None = None
    error_message: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class Candidate:
    """An invitation plus the reminder ordinal considered for this run."""

    invitation: BidInvitation
    reminder_number: int
    source: str
    queue_entry_id: str | None = None

    @property
    def bid_id(self) -> str:
        return self.invitation.id


@dataclass(slots=True)
class EligibleReminder:
    """A candidate that passed eligibility, with its rendered email."""

    candidate: Candidate
    to_email: str
    to_name: str | None
    subject: str
    text_body: str
    html_body: str


@dataclass(slots=True)
class SkippedCandidate:
    candidate: Candidate
    reason: str


@dataclass(slots=True)
class DispatchResult:
    """Outcome of one candidate, before it is committed."""

    candidate: Candidate
    status: str
    to_email: str | None = None
    subject: str | None = None
    error: str | None = None
    reason: str | None = None

    @classmethod
    def skipped(cls, skipped: SkippedCandidate) -> "DispatchResult":
        return cls(
            candidate=skipped.candidate,
            status=RESULT_SKIPPED,
            to_email=skipped.candidate.invitation.subcontractor_email,
            reason=skipped.reason,
        )


@dataclass(slots=True)
class ReminderRunSummary:
    """Aggregate result of one run, returned to the caller."""

    sent: int = 0
    failed: int = 0
    skipped: int = 0
    would_send: int = 0
    details: list[dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.sent + self.failed + self.skipped + self.would_send

    def record(self, result: DispatchResult) -> None:
        detail: dict[str, Any] = {
            "bid_id": result.candidate.bid_id,
            "status": result.status,
            "reminder_number": result.candidate.reminder_number,
            "source": result.candidate.source,
        }
        if result.to_email:
            detail["to"] = result.to_email
        if result.reason:
            detail["reason"] = result.reason
        if result.error:
            detail["error"] = result.error

        if result.status == RESULT_SENT:
            self.sent += 1
        elif result.status == RESULT_FAILED:
            self.failed += 1
        elif result.status == RESULT_SKIPPED:
            self.skipped += 1
        elif result.status == RESULT_WOULD_SEND:
            self.would_send += 1

        self.details.append(detail)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "would_send": self.would_send,
            "details": self.details,
        }
