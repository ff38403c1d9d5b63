"""
Bid reminder feature package.

Every layer of the follow-up reminder flow lives here: domain models and
cadence rules, the Postgres repository, the run pipeline services, the
periodic job, and the HTTP router.
"""

# Re-export the primary building blocks for easy access.
from .api.router import router as reminders_router  # noqa: F401
from .services.reminder_service import ReminderService, get_reminder_service  # noqa: F401
from .jobs.reminder_job import start_bid_reminder_scheduler  # noqa: F401
from .domain.models import BidInvitation, CadenceSettings, ReminderRunSummary  # noqa: F401
