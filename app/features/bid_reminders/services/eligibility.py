"""
Eligibility rules for gathered candidates.

Pure: no I/O, and the same verdicts for dry and live runs.
"""

from datetime import UTC, datetime

from app.features.bid_reminders.domain.cadence import as_utc, reminder_due_at
from app.features.bid_reminders.domain.models import (
    SKIP_ALREADY_REMINDED,
    SKIP_MAX_REMINDERS,
    SKIP_MISSING_CONTACT,
    SKIP_NOT_INVITED,
    SKIP_NOT_YET_DUE,
    SKIP_OUT_OF_SEQUENCE,
    SKIP_PAUSED,
    SOURCE_QUEUED,
    CadenceSettings,
    Candidate,
    EligibleReminder,
    SkippedCandidate,
)
from app.features.bid_reminders.services.email_renderer import render_reminder_email


def _queued_cadence_reason(candidate: Candidate, settings: CadenceSettings, now: datetime) -> str | None:
    """A queued ordinal must be the next one and its threshold must have elapsed."""
    invitation = candidate.invitation
    if candidate.reminder_number != invitation.reminder_count + 1:
        return SKIP_OUT_OF_SEQUENCE

    due = reminder_due_at(invitation, settings)
    if due is None or due[1] > as_utc(now):
        return SKIP_NOT_YET_DUE
    return None


def skip_reason(
    candidate: Candidate, settings: CadenceSettings, now: datetime | None = None
) -> str | None:
    """First rule the candidate breaks, or None if it may be sent."""
    invitation = candidate.invitation

    if not invitation.has_contact():
        return SKIP_MISSING_CONTACT
    if invitation.reminders_paused:
        return SKIP_PAUSED
    if not invitation.is_awaiting_response():
        return SKIP_NOT_INVITED
    if candidate.source == SOURCE_QUEUED and candidate.reminder_number <= invitation.reminder_count:
        return SKIP_ALREADY_REMINDED
    if candidate.reminder_number > settings.max_reminders:
        return SKIP_MAX_REMINDERS
    if candidate.source == SOURCE_QUEUED:
        return _queued_cadence_reason(candidate, settings, now or datetime.now(UTC))
    return None


def filter_candidates(
    candidates: list[Candidate],
    settings: CadenceSettings,
    signature: str | None = None,
    now: datetime | None = None,
) -> tuple[list[EligibleReminder], list[SkippedCandidate]]:
    """Split candidates into rendered eligible reminders and skips, keeping order."""
    now = now or datetime.now(UTC)
    eligible: list[EligibleReminder] = []
    skipped: list[SkippedCandidate] = []

    for candidate in candidates:
        reason = skip_reason(candidate, settings, now)
        if reason is not None:
            skipped.append(SkippedCandidate(candidate=candidate, reason=reason))
            continue

        email = render_reminder_email(candidate, settings, signature)
        eligible.append(
            EligibleReminder(
                candidate=candidate,
                to_email=candidate.invitation.subcontractor_email,
                to_name=candidate.invitation.subcontractor_name,
                subject=email.subject,
                text_body=email.text_body,
                html_body=email.html_body,
            )
        )

    return eligible, skipped
