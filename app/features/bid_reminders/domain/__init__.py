"""
Domain subpackage for the bid reminder feature.
"""

from .cadence import next_ordinal_due, next_send_window, reminder_due_at, render_template
from .models import (
    BidInvitation,
    CadenceSettings,
    Candidate,
    DispatchResult,
    EligibleReminder,
    ReminderHistoryRecord,
    ReminderQueueEntry,
    ReminderRunSummary,
    SkippedCandidate,
)

__all__ = [
    "BidInvitation",
    "CadenceSettings",
    "Candidate",
    "DispatchResult",
    "EligibleReminder",
    "ReminderHistoryRecord",
    "ReminderQueueEntry",
    "ReminderRunSummary",
    "SkippedCandidate",
    "next_ordinal_due",
    "next_send_window",
    "reminder_due_at",
    "render_template",
]
