"""
Service layer for the bid reminder feature.
"""

from .candidate_gatherer import CandidateGatherer, GatherMode
from .dispatcher import ReminderDispatcher
from .eligibility import filter_candidates
from .reminder_service import (
    InvitationNotFoundError,
    ReminderConfigurationError,
    ReminderService,
    ReminderServiceError,
    get_reminder_service,
)
from .settings_resolver import SettingsResolver
from .state_updater import ReminderStateUpdater

__all__ = [
    "CandidateGatherer",
    "GatherMode",
    "InvitationNotFoundError",
    "ReminderConfigurationError",
    "ReminderDispatcher",
    "ReminderService",
    "ReminderServiceError",
    "ReminderStateUpdater",
    "SettingsResolver",
    "filter_candidates",
    "get_reminder_service",
]
