"""
Reminder cadence settings resolution.

Reads the single reminder_settings row and turns it into an immutable
CadenceSettings value. Never raises: anything missing or malformed falls
back to the built-in defaults.
"""

from datetime import time
from typing import Any

from app.features.bid_reminders.domain.models import CadenceSettings
from app.features.bid_reminders.ports import ReminderStore
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SETTINGS = CadenceSettings()

# reminder_settings column -> CadenceSettings field
COLUMN_MAP = {
    "first_reminder_days": "first_reminder_days",
    "second_reminder_days": "second_reminder_days",
    "final_reminder_days": "final_reminder_days",
    "max_reminders": "max_reminders",
    "auto_send_enabled": "auto_send_enabled",
    "send_time": "send_time",
    "timezone": "timezone",
    "send_days": "send_days",
    "reminder_subject_template": "subject_template",
    "reminder_message_template": "message_template",
}


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not a day count")
    number = int(value)
    if number < 0:
        raise ValueError("must be >= 0")
    return number


def _parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


def _parse_send_days(value: Any) -> tuple[int, ...]:
    days = tuple(sorted({int(day) for day in value}))
    if any(day < 0 or day > 6 for day in days):
        raise ValueError("weekday numbers run 0 (Sunday) to 6")
    return days


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "t", "1", "yes"}
    return bool(value)


def _parse_text(value: Any) -> str:
    text = str(value).strip()
    if not text:
        raise ValueError("empty template")
    return text


PARSERS = {
    "first_reminder_days": _non_negative_int,
    "second_reminder_days": _non_negative_int,
    "final_reminder_days": _non_negative_int,
    "max_reminders": _non_negative_int,
    "auto_send_enabled": _parse_bool,
    "send_time": _parse_time,
    "timezone": _parse_text,
    "send_days": _parse_send_days,
    "subject_template": _parse_text,
    "message_template": _parse_text,
}


def settings_from_row(row: dict[str, Any] | None) -> CadenceSettings:
    """Build CadenceSettings from a settings row, field by field."""
    if not row:
        return DEFAULT_SETTINGS

    values: dict[str, Any] = {}
    for column, field_name in COLUMN_MAP.items():
        raw = row.get(column)
        if raw is None:
            continue
        try:
            values[field_name] = PARSERS[field_name](raw)
        except (TypeError, ValueError) as e:
            logger.warning(
                "Malformed reminder setting, using default",
                column=column,
                value=str(raw)[:50],
                default=str(getattr(DEFAULT_SETTINGS, field_name)),
                error=str(e),
            )

    return CadenceSettings(**values)


class SettingsResolver:
    """Loads cadence settings through the persistence port."""

    def __init__(self, store: ReminderStore):
        self.store = store

    async def resolve(self) -> CadenceSettings:
        try:
            row = await self.store.read_settings()
        except Exception as e:
            logger.warning(
                "Could not read reminder settings, using defaults",
                error=str(e),
                error_type=type(e).__name__,
            )
            return DEFAULT_SETTINGS

        if not row:
            logger.info("No reminder settings row, using defaults")
            return DEFAULT_SETTINGS

        if not isinstance(row, dict):
            logger.warning("Unexpected reminder settings shape, using defaults", type=type(row).__name__)
            return DEFAULT_SETTINGS

        resolved = settings_from_row(row)
        logger.debug(
            "Reminder settings resolved",
            thresholds=list(resolved.thresholds),
            max_reminders=resolved.max_reminders,
            auto_send_enabled=resolved.auto_send_enabled,
        )
        return resolved
