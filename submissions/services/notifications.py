"""
Best-effort email notification sent after a lead is delivered.

Failures here are logged and never change the outcome of a delivery job.
"""
import json
import logging
from typing import Optional

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def build_email_body(payload: dict) -> str:
    """Plain-text summary of a delivered lead."""
    contact = payload.get('contact') or {}
    lines = [f"Submission ID: {payload.get('submissionId')}"]
    for key in ('schoolId', 'campusId', 'accountId', 'locationId', 'programId'):
        if key in payload:
            lines.append(f"{key[0].upper()}{key[1:-2]} ID: {payload.get(key) or ''}")
    lines.extend([
        '',
        f"Name: {contact.get('firstName', '')} {contact.get('lastName', '')}",
        f"Email: {contact.get('email', '')}",
        f"Phone: {contact.get('phone') or ''}",
        '',
        'Answers:',
    ])
    for key, value in (payload.get('answers') or {}).items():
        lines.append(f"- {key}: {json.dumps(value, ensure_ascii=False)}")
    return '\n'.join(lines)


def notify_lead_delivered(payload: dict, notifications: Optional[dict], subject: str) -> bool:
    """
    Emails a lead summary to the location's notification recipients.

    Args:
        payload: Canonical delivery payload that was sent
        notifications: Location settings, `{"enabled": bool, "recipients": [...]}`
        subject: Email subject line

    Returns:
        True if an email was sent, False if skipped or failed
    """
    if not settings.EMAIL_NOTIFICATIONS_ENABLED:
        return False
    if not notifications or not notifications.get('enabled'):
        return False

    recipients = [r for r in notifications.get('recipients') or [] if r]
    if not recipients:
        return False

    try:
        send_mail(
            subject,
            build_email_body(payload),
            settings.DEFAULT_FROM_EMAIL,
            recipients,
            fail_silently=False,
        )
    except Exception as e:
        logger.warning(f"[{payload.get('submissionId')}] Notification email failed: {e}")
        return False

    logger.info(f"[{payload.get('submissionId')}] Notification sent to {len(recipients)} recipients")
    return True
