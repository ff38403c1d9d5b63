"""
Cadence rules shared by every reminder path.

The computed candidate path, queue pre-scheduling and the dashboard all
decide "which ordinal is next and when is it due" through these functions,
so the sources cannot disagree about when a reminder is due.
"""

import re
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.features.bid_reminders.domain.models import BidInvitation, CadenceSettings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC (the database session runs in UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def days_since(start: datetime, now: datetime) -> int:
    """Whole days elapsed between two timestamps, floored."""
    return (as_utc(now) - as_utc(start)).days


def reminder_due_at(invitation: BidInvitation, settings: CadenceSettings) -> tuple[int, datetime] | None:
    """
    Next ordinal for the invitation and the moment its threshold elapses.

    Returns None when no further reminder can ever be due: the cap or the
    threshold list is exhausted, or the invitation date is unknown.
    """
    ordinal = invitation.reminder_count + 1
    threshold = settings.threshold_for(ordinal)
    if threshold is None or invitation.invitation_sent_at is None:
        return None
    return ordinal, as_utc(invitation.invitation_sent_at) + timedelta(days=threshold)


def next_ordinal_due(
    invitation: BidInvitation, settings: CadenceSettings, now: datetime
) -> int | None:
    """Ordinal of the reminder due for this invitation right now, or None."""
    if not invitation.is_awaiting_response() or invitation.reminders_paused:
        return None

    if invitation.next_reminder_at is not None and as_utc(invitation.next_reminder_at) > as_utc(now):
        return None

    due = reminder_due_at(invitation, settings)
    if due is None:
        return None

    ordinal, _ = due
    threshold = settings.threshold_for(ordinal)
    if days_since(invitation.invitation_sent_at, now) < threshold:
        return None
    return ordinal


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown reminder timezone, using UTC", timezone=name)
        return ZoneInfo("UTC")


def next_send_window(due_at: datetime, settings: CadenceSettings) -> datetime:
    """
    First allowed send slot at or after due_at.

    Slots are settings.send_time on the weekdays in settings.send_days
    (0 = Sunday), in settings.timezone. Returned in UTC.
    """
    if not settings.send_days:
        return as_utc(due_at)

    zone = _zone(settings.timezone)
    local_due = as_utc(due_at).astimezone(zone)

    for offset in range(8):
        day = local_due.date() + timedelta(days=offset)
        slot = datetime.combine(day, settings.send_time, tzinfo=zone)
        # date.weekday() is Monday=0, the settings use Sunday=0
        sunday_based = (day.weekday() + 1) % 7
        if slot >= local_due and sunday_based in settings.send_days:
            return slot.astimezone(UTC)

    return as_utc(due_at)


def render_template(template: str, context: dict[str, object]) -> str:
    """Substitute {{name}} placeholders; unknown names are left untouched."""

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in context or context[key] is None:
            return match.group(0)
        return str(context[key])

    return _PLACEHOLDER.sub(_replace, template or "")
