"""CRUD operations for alert configurations: storage, toggling, match recording, stats."""
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenderwatch.api.schemas.alert import (
    AlertConfiguration,
    AlertConfigurationCreate,
    AlertConfigurationUpdate,
    AlertRuleBase,
    AlertsByFrequency,
    AlertSummaryStats,
    RecentMatch,
)
from tenderwatch.models.alert import AlertConfigurationRow
from tenderwatch.models.alert_match import AlertMatch
from tenderwatch.models.tender import Tender

logger = logging.getLogger(__name__)

RULE_SECTIONS = (
    "keywords",
    "categories",
    "locations",
    "organization_types",
    "estimated_value",
    "email_settings",
    "advanced_filters",
)


# ── Conversion ───────────────────────────────────────────────────────

def to_config(row: AlertConfigurationRow) -> AlertConfiguration:
    """Rebuild the validated configuration from a stored row."""
    data: dict[str, Any] = {
        "id": row.id,
        "user_id": row.user_id,
        "name": row.name,
        "description": row.description,
        "is_active": row.is_active,
        "keywords": row.keywords or [],
        "categories": row.categories or [],
        "locations": row.locations or {},
        "organization_types": row.organization_types or [],
        "estimated_value": row.estimated_value,
        "email_settings": row.email_settings or {},
        "advanced_filters": row.advanced_filters or {},
        "stats": {
            "total_matches": row.total_matches or 0,
            "emails_sent": row.emails_sent or 0,
            "last_matched_tender": row.last_matched_tender_id,
            "last_matched_at": row.last_matched_at,
        },
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }
    return AlertConfiguration.model_validate(data)


def _write_rule(row: AlertConfigurationRow, rule: AlertRuleBase) -> None:
    dumped = rule.model_dump(mode="json")
    row.name = rule.name
    row.description = rule.description
    row.is_active = rule.is_active
    for section in RULE_SECTIONS:
        setattr(row, section, dumped[section])


def _deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def merge_update(current: AlertConfiguration, patch: AlertConfigurationUpdate) -> AlertConfigurationCreate:
    """
    Merge a partial update onto the current rule and re-validate the whole.
    Raises pydantic.ValidationError if the merged rule breaks an invariant.
    """
    base = current.model_dump(include=set(AlertRuleBase.model_fields))
    changes = patch.model_dump(exclude_unset=True)
    return AlertConfigurationCreate.model_validate(_deep_merge(base, changes))


# ── CRUD ─────────────────────────────────────────────────────────────

def create_alert(db: Session, user_id: str, rule: AlertRuleBase) -> AlertConfigurationRow:
    """Create a new alert configuration (active unless the rule says otherwise)."""
    row = AlertConfigurationRow(user_id=user_id)
    _write_rule(row, rule)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Alert %s created for user %s (%d keywords)", row.id, user_id, len(rule.keywords))
    return row


def get_alert(db: Session, alert_id: str, user_id: str | None = None) -> Optional[AlertConfigurationRow]:
    """Get an alert by ID, optionally restricted to its owner."""
    query = db.query(AlertConfigurationRow).filter(AlertConfigurationRow.id == alert_id)
    if user_id:
        query = query.filter(AlertConfigurationRow.user_id == user_id)
    return query.first()


def list_alerts(db: Session, user_id: str) -> list[AlertConfigurationRow]:
    """List one user's alerts, most recently updated first."""
    return (
        db.query(AlertConfigurationRow)
        .filter(AlertConfigurationRow.user_id == user_id)
        .order_by(AlertConfigurationRow.updated_at.desc(), AlertConfigurationRow.created_at.desc())
        .all()
    )


def list_active_alerts(db: Session) -> list[AlertConfigurationRow]:
    """All active alerts across users (matcher input)."""
    return (
        db.query(AlertConfigurationRow)
        .filter(AlertConfigurationRow.is_active.is_(True))
        .order_by(AlertConfigurationRow.created_at.asc())
        .all()
    )


def update_alert(db: Session, row: AlertConfigurationRow, rule: AlertRuleBase) -> AlertConfigurationRow:
    """Replace the rule part of an alert with an already validated rule."""
    _write_rule(row, rule)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row


def toggle_alert(db: Session, row: AlertConfigurationRow) -> AlertConfigurationRow:
    """Flip active <-> inactive."""
    row.is_active = not row.is_active
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    logger.info("Alert %s is now %s", row.id, "active" if row.is_active else "inactive")
    return row


def delete_alert(db: Session, alert_id: str) -> bool:
    """Delete an alert and its stored matches."""
    row = get_alert(db, alert_id)
    if not row:
        return False
    db.query(AlertMatch).filter(AlertMatch.alert_id == alert_id).delete()
    db.delete(row)
    db.commit()
    return True


# ── Match recording ──────────────────────────────────────────────────

def has_match(db: Session, alert_id: str, tender_id: str) -> bool:
    return (
        db.query(AlertMatch.id)
        .filter(AlertMatch.alert_id == alert_id, AlertMatch.tender_id == tender_id)
        .first()
        is not None
    )


def record_match(
    db: Session,
    alert_id: str,
    tender_id: str,
    matched_keywords: list[str],
    email_sent: bool,
    pending_digest: bool = False,
    now: Optional[datetime] = None,
) -> Optional[AlertMatch]:
    """
    Store a confirmed match and bump the alert's stats in one transaction.
    Exactly once per (alert, tender): a repeat call returns None and changes nothing.
    """
    now = now or datetime.now(timezone.utc)
    row = (
        db.query(AlertConfigurationRow)
        .filter(AlertConfigurationRow.id == alert_id)
        .with_for_update()
        .first()
    )
    if row is None:
        raise LookupError(f"Alert configuration not found: {alert_id}")

    if has_match(db, alert_id, tender_id):
        db.rollback()
        return None

    match = AlertMatch(
        alert_id=alert_id,
        tender_id=tender_id,
        matched_keywords=list(matched_keywords),
        matched_at=now,
        notified_at=None if pending_digest else now,
    )
    db.add(match)
    row.total_matches = (row.total_matches or 0) + 1
    if email_sent:
        row.emails_sent = (row.emails_sent or 0) + 1
    row.last_matched_tender_id = tender_id
    row.last_matched_at = now
    try:
        db.commit()
    except IntegrityError:
        # Concurrent writer stored the same pair first
        db.rollback()
        return None
    db.refresh(match)
    return match


def list_pending_matches(db: Session, alert_id: str) -> list[Tuple[AlertMatch, Tender]]:
    """Matches waiting for a digest, oldest first."""
    return (
        db.query(AlertMatch, Tender)
        .join(Tender, Tender.id == AlertMatch.tender_id)
        .filter(AlertMatch.alert_id == alert_id, AlertMatch.notified_at.is_(None))
        .order_by(AlertMatch.matched_at.asc())
        .all()
    )


def mark_digest_sent(
    db: Session,
    alert_id: str,
    match_ids: list[str],
    now: Optional[datetime] = None,
) -> None:
    """Flag matches as notified, count one email and remember when the digest went out."""
    now = now or datetime.now(timezone.utc)
    row = (
        db.query(AlertConfigurationRow)
        .filter(AlertConfigurationRow.id == alert_id)
        .with_for_update()
        .first()
    )
    if row is None:
        raise LookupError(f"Alert configuration not found: {alert_id}")
    if match_ids:
        (
            db.query(AlertMatch)
            .filter(AlertMatch.id.in_(match_ids))
            .update({AlertMatch.notified_at: now}, synchronize_session=False)
        )
    row.emails_sent = (row.emails_sent or 0) + 1
    row.last_digest_at = now
    db.commit()


def mark_period_closed(db: Session, alert_id: str, now: Optional[datetime] = None) -> None:
    """Remember a digest slot was handled even though nothing was sent."""
    row = get_alert(db, alert_id)
    if row is not None:
        row.last_digest_at = now or datetime.now(timezone.utc)
        db.commit()


# ── Stats ────────────────────────────────────────────────────────────

def summary_stats(db: Session, user_id: str, recent_limit: int = 5) -> AlertSummaryStats:
    """Aggregate stats across one user's alerts (dashboard view)."""
    configs = [to_config(r) for r in list_alerts(db, user_id)]
    by_frequency = {"immediate": 0, "daily": 0, "weekly": 0}
    for c in configs:
        by_frequency[c.email_settings.frequency.value] += 1

    active = sum(1 for c in configs if c.is_active)
    recent = sorted(
        (c for c in configs if c.stats.last_matched_at is not None),
        key=lambda c: c.stats.last_matched_at,
        reverse=True,
    )[:recent_limit]

    return AlertSummaryStats(
        total_alerts=len(configs),
        active_alerts=active,
        inactive_alerts=len(configs) - active,
        total_matches=sum(c.stats.total_matches for c in configs),
        total_emails_sent=sum(c.stats.emails_sent for c in configs),
        alerts_by_frequency=AlertsByFrequency(**by_frequency),
        recent_matches=[
            RecentMatch(
                alert_id=c.id,
                alert_name=c.name,
                last_matched_at=c.stats.last_matched_at,
                total_matches=c.stats.total_matches,
            )
            for c in recent
        ],
    )
