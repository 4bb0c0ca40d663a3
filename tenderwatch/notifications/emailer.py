"""
Email sending: file mode (write to outbox) or SMTP mode.
Config-driven via tenderwatch.core.config (EMAIL_MODE, EMAIL_*).
Every send returns the RFC 5322 Message-ID it used.
"""
import logging
import os
import smtplib
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.utils import make_msgid
from pathlib import Path
from typing import Optional

from tenderwatch.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_FROM = "alerts@tenderwatch.local"


def _outbox_dir() -> Path:
    """Outbox directory; the EMAIL_OUTBOX_DIR env var is read on every call."""
    raw = os.environ.get("EMAIL_OUTBOX_DIR") or settings.email_outbox_dir
    p = Path(raw)
    if not p.is_absolute():
        p = Path.cwd() / p
    return p


def _email_mode() -> str:
    """EMAIL_MODE without trailing comments or case, "file" when unset."""
    raw = os.environ.get("EMAIL_MODE") or getattr(settings, "email_mode", None) or "file"
    mode = str(raw).split("#")[0].strip().lower()
    return mode if mode else "file"


def send_email(to: str, subject: str, body: str, from_addr: Optional[str] = None) -> str:
    """Send plain-text email via configured mode: file | smtp."""
    return _send(to=to, subject=subject, body=body, from_addr=from_addr, subtype="plain")


def send_email_html(to: str, subject: str, html_body: str, from_addr: Optional[str] = None) -> str:
    """Send HTML email via configured mode: file | smtp."""
    return _send(to=to, subject=subject, body=html_body, from_addr=from_addr, subtype="html")


def _send(to: str, subject: str, body: str, from_addr: Optional[str], subtype: str) -> str:
    from_addr = from_addr or settings.email_from or DEFAULT_FROM
    domain = from_addr.rsplit("@", 1)[-1] if "@" in from_addr else None
    message_id = make_msgid(domain=domain)
    mode = _email_mode()

    if mode == "file":
        _write_email_to_outbox(
            to=to,
            subject=subject,
            body=body,
            from_addr=from_addr,
            message_id=message_id,
            content_type=f"text/{subtype}; charset=utf-8",
        )
    elif mode == "smtp":
        _send_email_smtp(to=to, subject=subject, body=body, from_addr=from_addr, message_id=message_id, subtype=subtype)
    else:
        raise ValueError(f"Unknown EMAIL_MODE: {mode}")

    logger.info("Email sent mode=%s to=%s subject='%s' id=%s", mode, to, subject, message_id)
    return message_id


def _write_email_to_outbox(
    to: str,
    subject: str,
    body: str,
    from_addr: str,
    message_id: str,
    content_type: str = "text/plain; charset=utf-8",
) -> Path:
    """One file per message: headers, blank line, body."""
    outbox = _outbox_dir()
    outbox.mkdir(parents=True, exist_ok=True)
    now = datetime.now(timezone.utc)
    ts = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond:06d}Z"
    ext = "html" if "html" in content_type else "txt"
    path = outbox / f"email_{ts}.{ext}"
    content = (
        f"Message-ID: {message_id}\nFrom: {from_addr}\nTo: {to}\n"
        f"Subject: {subject}\nContent-Type: {content_type}\n\n{body}"
    )
    path.write_text(content, encoding="utf-8")
    return path


def _send_email_smtp(
    to: str,
    subject: str,
    body: str,
    from_addr: str,
    message_id: str,
    subtype: str = "plain",
) -> None:
    """Deliver through EMAIL_SMTP_HOST, with STARTTLS and login when configured."""
    host = settings.email_smtp_host
    port = settings.email_smtp_port or (587 if settings.email_smtp_use_tls else 25)
    if not host:
        raise ValueError("EMAIL_SMTP_HOST is required when EMAIL_MODE=smtp")
    msg = MIMEText(body, subtype, "utf-8")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to
    msg["Message-ID"] = message_id
    with smtplib.SMTP(host, port) as server:
        if settings.email_smtp_use_tls:
            server.starttls()
        if settings.email_smtp_username and settings.email_smtp_password:
            server.login(settings.email_smtp_username, settings.email_smtp_password)
        server.sendmail(from_addr, [to], msg.as_string())
