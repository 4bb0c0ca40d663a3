"""HTML email templates for TenderWatch alert notifications.

Three emails: one tender per immediate alert, one digest per daily/weekly
alert, and the test email sent from the alert settings page.
Inline styles only (email clients ignore <style> blocks).
"""
import html
import math
from datetime import datetime, timezone
from typing import Any, Optional

from tenderwatch.api.schemas.alert import AlertConfiguration
from tenderwatch.api.schemas.tender import TenderSnapshot
from tenderwatch.services.alert_engine import days_until_closing


# ── Helpers ──────────────────────────────────────────────────────────

def _esc(value: Any) -> str:
    if value is None:
        return "—"
    s = str(value).strip()
    return html.escape(s) if s else "—"


def _fmt_date(dt: Optional[datetime]) -> str:
    if not dt:
        return "—"
    return dt.strftime("%d %b %Y")


def _days_left(closing: Optional[datetime], now: datetime) -> Optional[int]:
    """Started days left, counted like the maxDaysUntilClosing filter (0 or less once closed)."""
    if not closing:
        return None
    return math.ceil(days_until_closing(closing, now))


def _deadline_style(closing: Optional[datetime], now: datetime) -> tuple[str, str]:
    """Return (color, label) based on urgency."""
    days = _days_left(closing, now)
    if days is None:
        return "#94a3b8", "—"
    label = _fmt_date(closing)
    if days <= 0:
        return "#94a3b8", f"{label} · closed"
    if days <= 3:
        return "#ef4444", f"{label} · {days}d left"
    if days <= 7:
        return "#f59e0b", f"{label} · {days}d left"
    return "#10b981", label


def _fmt_value(tender: TenderSnapshot) -> str:
    """1234567.0 LKR -> 'LKR 1,234,567'."""
    value = tender.financials.estimated_value if tender.financials else None
    if not value or value.amount is None or value.amount <= 0:
        return ""
    return f"{value.currency or ''} {value.amount:,.0f}".strip()


def _location(tender: TenderSnapshot) -> str:
    loc = tender.location
    if not loc:
        return ""
    return ", ".join(p for p in (loc.city, loc.district, loc.province) if p)


def _tender_link(app_url: str, tender: TenderSnapshot) -> str:
    return f"{app_url.rstrip('/')}/tenders/{tender.id}" if tender.id else app_url


def _keywords_line(keywords: list[str]) -> str:
    if not keywords:
        return ""
    pills = "".join(
        f'<span style="display:inline-block;background:#fff7ed;color:#c2410c;padding:2px 8px;'
        f'border-radius:10px;font-size:11px;font-weight:600;margin:0 4px 4px 0;">{_esc(k)}</span>'
        for k in keywords
    )
    return f'<div style="margin-top:8px;">{pills}</div>'


# ── Shared layout ────────────────────────────────────────────────────

_FONT = "-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif"


def _wrap(title: str, subtitle: str, body_rows: str, app_url: str) -> str:
    year = datetime.now().year
    return f"""<!DOCTYPE html>
<html><body style="margin:0;padding:24px 0;background:#f1f5f9;font-family:{_FONT};">
<table width="600" align="center" cellpadding="0" cellspacing="0" style="background:#ffffff;border-radius:16px;">
  <tr><td style="padding:28px 32px;background:#1e3a5f;border-radius:16px 16px 0 0;">
    <div style="font-size:22px;font-weight:800;color:#ffffff;">TenderWatch</div>
    <div style="font-size:14px;color:#cbd5e1;margin-top:6px;">{_esc(title)}</div>
    <div style="font-size:12px;color:#94a3b8;margin-top:2px;">{_esc(subtitle)}</div>
  </td></tr>
  {body_rows}
  <tr><td style="padding:24px 32px;background:#f8fafc;border-radius:0 0 16px 16px;text-align:center;">
    <a href="{html.escape(app_url)}/alerts" style="display:inline-block;background:#f97316;color:#ffffff;padding:10px 28px;border-radius:8px;text-decoration:none;font-size:13px;font-weight:700;">Manage alerts</a>
    <div style="font-size:11px;color:#94a3b8;margin-top:14px;">You receive this email because you enabled tender alerts on TenderWatch.<br/>&copy; {year} TenderWatch</div>
  </td></tr>
</table>
</body></html>"""


def _tender_card(tender: TenderSnapshot, keywords: list[str], app_url: str, now: datetime, idx: int = 0) -> str:
    dl_color, dl_label = _deadline_style(tender.closing_at, now)
    org = tender.organization.name if tender.organization else None
    meta = " · ".join(p for p in (_esc(org) if org else "", html.escape(_location(tender)), html.escape(tender.category or "")) if p)
    value = _fmt_value(tender)
    value_html = f'<span style="color:#a16207;font-weight:700;margin-left:8px;">{html.escape(value)}</span>' if value else ""
    bg = "#ffffff" if idx % 2 == 0 else "#fafbfc"
    return f"""
  <tr><td style="padding:18px 32px;background:{bg};border-bottom:1px solid #f1f5f9;">
    <div style="font-size:12px;font-weight:700;color:{dl_color};">&#x23F0; {html.escape(dl_label)}{value_html}</div>
    <div style="font-size:15px;font-weight:700;color:#0f172a;margin-top:6px;">
      <a href="{html.escape(_tender_link(app_url, tender))}" style="color:#0f172a;text-decoration:none;">{_esc(tender.title)}</a>
    </div>
    <div style="font-size:12px;color:#64748b;margin-top:4px;">{meta or "—"}</div>
    {_keywords_line(keywords)}
  </td></tr>"""


# ── Public builders ──────────────────────────────────────────────────

def build_match_html(
    config: AlertConfiguration,
    tender: TenderSnapshot,
    matched_keywords: list[str],
    app_url: str,
) -> str:
    """Immediate alert: one tender."""
    now = datetime.now(timezone.utc)
    return _wrap(
        title=f"New tender for “{config.name}”",
        subtitle="Matched on: " + (", ".join(matched_keywords) or "—"),
        body_rows=_tender_card(tender, matched_keywords, app_url, now),
        app_url=app_url,
    )


def build_digest_html(
    config: AlertConfiguration,
    items: list[tuple[TenderSnapshot, list[str]]],
    app_url: str,
) -> str:
    """Daily/weekly digest: all pending matches of one alert."""
    now = datetime.now(timezone.utc)
    period = "Daily" if config.email_settings.frequency.value == "daily" else "Weekly"
    cards = "".join(
        _tender_card(tender, keywords, app_url, now, idx)
        for idx, (tender, keywords) in enumerate(items)
    )
    n = len(items)
    return _wrap(
        title=f"{period} digest for “{config.name}”",
        subtitle=f"{n} matching tender{'s' if n != 1 else ''}",
        body_rows=cards,
        app_url=app_url,
    )


def build_test_email_html(config: AlertConfiguration, app_url: str) -> str:
    """Test email: confirms delivery and summarises the rule."""
    kw = ", ".join(f"{k.term} ({k.match_type.value})" for k in config.keywords)
    es = config.email_settings
    schedule = es.frequency.value
    if es.frequency.value != "immediate":
        schedule += f" at {es.daily_summary_time}"
    rows = f"""
  <tr><td style="padding:24px 32px;font-size:14px;color:#334155;line-height:1.7;">
    This is a test email for your alert <strong>{_esc(config.name)}</strong>.<br/>
    Keywords: {_esc(kw)}<br/>
    Frequency: {_esc(schedule)}<br/>
    Status: {"active" if config.is_active else "inactive"}
  </td></tr>"""
    return _wrap(
        title="Test alert email",
        subtitle="If you can read this, alert emails reach you.",
        body_rows=rows,
        app_url=app_url,
    )
