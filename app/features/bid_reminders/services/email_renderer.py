"""
Reminder email content.

Builds the subject, plain-text body and HTML body for one reminder from
the cadence templates and the invitation context.
"""

from dataclasses import dataclass
from html import escape

from app.features.bid_reminders.domain.cadence import render_template
from app.features.bid_reminders.domain.models import CadenceSettings, Candidate

DEFAULT_SIGNATURE = "The Project Team"

_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; }}
    .header {{ background-color: #f39c12; color: white; padding: 20px; text-align: center; }}
    .content {{ padding: 20px; }}
    .highlight {{ background-color: #fef9e7; border-left: 4px solid #f39c12; padding: 15px; margin: 20px 0; }}
    .footer {{ text-align: center; padding: 20px; color: #666; font-size: 12px; border-top: 1px solid #ddd; }}
  </style>
</head>
<body>
  <div class="header"><h2>{heading}</h2></div>
  <div class="content">
    <p>Dear {recipient},</p>
    <p>{message}</p>
    <div class="highlight">{details}</div>
    <p>{closing}</p>
    <p>If you've already submitted your bid, please disregard this reminder.</p>
    <p style="margin-top: 30px;">Best regards,<br>{signature}</p>
  </div>
  <div class="footer"><p>This is an automated reminder from BidCoordinator</p></div>
</body>
</html>"""

_CLOSING = (
    "We value your partnership and would appreciate your response. If you have any "
    "questions or need additional information, please don't hesitate to reach out."
)


@dataclass(frozen=True, slots=True)
class RenderedEmail:
    subject: str
    text_body: str
    html_body: str


def template_context(candidate: Candidate) -> dict[str, object]:
    invitation = candidate.invitation
    due_date = invitation.bid_due_date.isoformat() if invitation.bid_due_date else None
    return {
        "project_name": invitation.project_name,
        "bid_item": invitation.bid_item_description or "",
        "due_date": due_date or "as soon as possible",
        "reminder_number": candidate.reminder_number,
        "subcontractor_name": invitation.subcontractor_name or "Contractor",
    }


def render_reminder_email(
    candidate: Candidate, settings: CadenceSettings, signature: str | None = None
) -> RenderedEmail:
    invitation = candidate.invitation
    context = template_context(candidate)
    ordinal = candidate.reminder_number
    signature = signature or DEFAULT_SIGNATURE

    subject = render_template(settings.subject_template, context)
    if ordinal > 1:
        subject = f"[Reminder {ordinal}] {subject}"

    message = render_template(settings.message_template, context)
    heading = "Bid Request Reminder" + (f" #{ordinal}" if ordinal > 1 else "")
    recipient = invitation.subcontractor_name or "Contractor"

    text_lines = [heading.upper(), "", f"Dear {recipient},", "", message, ""]
    text_lines.append(f"PROJECT: {invitation.project_name}")
    if invitation.bid_item_description:
        text_lines.append(f"SCOPE: {invitation.bid_item_description}")
    if invitation.bid_due_date:
        text_lines.append(f"DUE DATE: {invitation.bid_due_date.isoformat()}")
    text_lines += [
        "",
        _CLOSING,
        "",
        "If you've already submitted your bid, please disregard this reminder.",
        "",
        "Best regards,",
        signature,
    ]

    details = [f"<strong>Project:</strong> {escape(invitation.project_name or '')}"]
    if invitation.bid_item_description:
        details.append(f"<strong>Scope:</strong> {escape(invitation.bid_item_description)}")
    if invitation.bid_due_date:
        details.append(f"<strong>Due Date:</strong> {invitation.bid_due_date.isoformat()}")

    html_body = _HTML_TEMPLATE.format(
        heading=escape(heading),
        recipient=escape(recipient),
        message=escape(message),
        details="<br>\n".join(details),
        closing=escape(_CLOSING),
        signature=escape(signature),
    )

    return RenderedEmail(subject=subject, text_body="\n".join(text_lines), html_body=html_body)
