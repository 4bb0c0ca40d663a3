"""Notification service: alert emails (immediate, digest, test).

Recipient is the alert's custom email, else the owner's account email.
Delivery goes through tenderwatch.notifications.emailer (file | smtp).
"""
import logging
from typing import Any, Optional

from tenderwatch.api.schemas.alert import AlertConfiguration
from tenderwatch.api.schemas.tender import TenderSnapshot
from tenderwatch.core.config import settings
from tenderwatch.notifications.emailer import send_email_html
from tenderwatch.services.email_templates import (
    build_digest_html,
    build_match_html,
    build_test_email_html,
)

logger = logging.getLogger(__name__)


def resolve_recipient(config: AlertConfiguration, user: Any = None) -> Optional[str]:
    """custom_email on the alert, or the owner's account email."""
    if config.email_settings.custom_email:
        return str(config.email_settings.custom_email)
    email = getattr(user, "email", None)
    return email or None


def send_match_notification(
    to_address: str,
    config: AlertConfiguration,
    tender: TenderSnapshot,
    matched_keywords: list[str],
) -> str:
    """Immediate alert for one matched tender. Returns the message id."""
    subject = f"TenderWatch: new tender for “{config.name}”"
    if tender.title:
        subject += f" – {tender.title[:80]}"
    html_body = build_match_html(config, tender, matched_keywords, app_url=settings.app_url)
    message_id = send_email_html(to=to_address, subject=subject, html_body=html_body)
    logger.info("Alert %s: immediate notification for tender %s → %s", config.id, tender.id, to_address)
    return message_id


def send_digest(
    to_address: str,
    config: AlertConfiguration,
    items: list[tuple[TenderSnapshot, list[str]]],
) -> Optional[str]:
    """One digest email with every pending match of an alert. None if nothing to send."""
    if not items:
        return None
    n = len(items)
    period = config.email_settings.frequency.value
    subject = f"TenderWatch {period} digest: {n} tender{'s' if n != 1 else ''} – {config.name}"
    html_body = build_digest_html(config, items, app_url=settings.app_url)
    message_id = send_email_html(to=to_address, subject=subject, html_body=html_body)
    logger.info("Alert %s: %s digest with %d matches → %s", config.id, period, n, to_address)
    return message_id


def send_test_email(to_address: str, config: AlertConfiguration) -> str:
    """Test email from the alert settings page. Returns the message id."""
    subject = f"TenderWatch test alert – {config.name}"
    html_body = build_test_email_html(config, app_url=settings.app_url)
    return send_email_html(to=to_address, subject=subject, html_body=html_body)
