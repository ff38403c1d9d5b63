from .reminder_job import (
    BidReminderJob,
    BidReminderJobError,
    bid_reminder_job,
    run_bid_reminders_once,
    start_bid_reminder_scheduler,
)

__all__ = [
    "BidReminderJob",
    "BidReminderJobError",
    "bid_reminder_job",
    "run_bid_reminders_once",
    "start_bid_reminder_scheduler",
]
