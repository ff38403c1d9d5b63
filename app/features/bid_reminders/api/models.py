"""
Bid reminder API request/response models.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ProcessRemindersRequest(BaseModel):
    """Body for POST /reminders/process."""

    model_config = ConfigDict(extra="forbid")

    manual_bid_ids: list[str] | None = Field(
        default=None, description="Explicit bids to remind; omit for the automatic batch"
    )
    dry_run: bool = Field(default=False, description="Evaluate without sending or writing")


class ReminderDetail(BaseModel):
    bid_id: str
    status: Literal["sent", "failed", "skipped", "would_send"]
    reminder_number: int
    source: str
    to: str | None = None
    reason: str | None = None
    error: str | None = None


class ReminderRunResults(BaseModel):
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    would_send: int = 0
    details: list[ReminderDetail] = Field(default_factory=list)


class ProcessRemindersResponse(BaseModel):
    """Response for POST /reminders/process"""

    success: bool
    message: str
    dry_run: bool = False
    results: ReminderRunResults


class ProcessEndpointStatus(BaseModel):
    """Response for GET /reminders/process"""

    status: str
    endpoint: str
    has_api_key: bool
    has_database: bool


class ScheduleReminderResponse(BaseModel):
    bid_id: str
    scheduled: bool
    reminder_number: int | None = None
    next_reminder_at: datetime | None = None
    queued: bool = False
    reason: str | None = None


class PauseRemindersResponse(BaseModel):
    bid_id: str
    reminders_paused: bool


class ReminderDashboardResponse(BaseModel):
    """Response for GET /reminders/dashboard"""

    stats: dict[str, int]
    cadence: dict[str, Any]
