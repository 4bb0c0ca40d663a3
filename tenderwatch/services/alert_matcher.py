"""Alert matcher: evaluate active alerts against new tenders and dispatch notifications.

Key behaviors:
- Only active alerts are evaluated; each (alert, tender) pair is recorded once
- Immediate alerts: one email per match, recorded only after the email went out;
  a failed email leaves the pair unrecorded and sets retry_since for the next run
- Daily/weekly alerts: matches are stored as pending and sent as one digest
  once the owner's local time passes daily_summary_time for the period
- A failure on one alert is logged and does not stop the others

Called by the scheduler via run_alert_matcher(db) and run_digests(db).
"""
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from tenderwatch.api.schemas.alert import AlertConfiguration, EmailFrequency
from tenderwatch.core.config import settings
from tenderwatch.db.crud import alerts as alerts_crud
from tenderwatch.db.crud.tenders import list_tenders_since, to_snapshot
from tenderwatch.models.user import User
from tenderwatch.services import notification_service
from tenderwatch.services.alert_engine import evaluate

logger = logging.getLogger(__name__)

_RETRY_MARGIN = timedelta(seconds=1)


# ── Helpers ──────────────────────────────────────────────────────────

def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def owner_timezone(user: Optional[User]) -> tzinfo:
    """Owner's timezone, falling back to the configured default."""
    name = getattr(user, "timezone", None) or settings.default_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r for user %s, using %s", name, getattr(user, "id", None), settings.default_timezone)
        return ZoneInfo(settings.default_timezone)


def digest_slot(config: AlertConfiguration, tz: tzinfo, now: datetime) -> Optional[datetime]:
    """
    Start of the current digest period in the owner's timezone:
    today at daily_summary_time (daily) or this ISO week's Monday at that time (weekly).
    None for immediate alerts.
    """
    frequency = config.email_settings.frequency
    if frequency == EmailFrequency.IMMEDIATE:
        return None
    hour, minute = config.email_settings.summary_hour_minute
    local_now = _utc(now).astimezone(tz)
    slot = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if frequency == EmailFrequency.WEEKLY:
        slot -= timedelta(days=local_now.weekday())
    return slot


def is_digest_due(
    config: AlertConfiguration,
    tz: tzinfo,
    last_digest_at: Optional[datetime],
    now: datetime,
) -> bool:
    """True once the period's send time has passed and no digest went out since."""
    slot = digest_slot(config, tz, now)
    if slot is None:
        return False
    if _utc(now) < slot:
        return False
    return last_digest_at is None or _utc(last_digest_at) < slot


# ── Matching pass ────────────────────────────────────────────────────

def _dispatch_match(
    db: Session,
    config: AlertConfiguration,
    user: Optional[User],
    tender: Any,
    matched_keywords: list[str],
    now: datetime,
) -> str:
    """Record one match and notify as configured. Returns the outcome label."""
    es = config.email_settings

    if not es.enabled:
        alerts_crud.record_match(db, config.id, tender.id, matched_keywords, email_sent=False, now=now)
        return "recorded"

    if es.frequency != EmailFrequency.IMMEDIATE:
        alerts_crud.record_match(
            db, config.id, tender.id, matched_keywords,
            email_sent=False, pending_digest=True, now=now,
        )
        return "queued"

    to_address = notification_service.resolve_recipient(config, user)
    if not to_address:
        logger.warning("[Matcher] Alert %s has no recipient (no custom email, no account email)", config.id)
        alerts_crud.record_match(db, config.id, tender.id, matched_keywords, email_sent=False, now=now)
        return "recorded"

    try:
        notification_service.send_match_notification(to_address, config, tender, matched_keywords)
    except Exception:
        # Left unrecorded so the next run retries
        logger.exception("[Matcher] Email for alert %s, tender %s failed", config.id, tender.id)
        return "failed"
    alerts_crud.record_match(db, config.id, tender.id, matched_keywords, email_sent=True, now=now)
    return "emailed"


def run_alert_matcher(
    db: Session,
    since: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Evaluate every active alert against tenders inserted/updated since `since`
    (default: the last MATCH_LOOKBACK_HOURS).

    `retry_since` in the result is the lower bound the next run must scan from
    to pick up tenders whose email failed (None when nothing failed).
    """
    now = now or datetime.now(timezone.utc)
    since = since or now - timedelta(hours=settings.match_lookback_hours)

    tenders = [(_utc(t.updated_at), to_snapshot(t)) for t in list_tenders_since(db, since)]
    rows = alerts_crud.list_active_alerts(db)

    results: dict[str, Any] = {
        "alerts_processed": 0,
        "tenders_scanned": len(tenders),
        "new_matches": 0,
        "emails_sent": 0,
        "queued_for_digest": 0,
        "errors": 0,
        "retry_since": None,
        "details": [],
    }
    if not tenders or not rows:
        return results

    def _retry_from(updated_at: datetime) -> None:
        # list_tenders_since is exclusive
        bound = updated_at - _RETRY_MARGIN
        if results["retry_since"] is None or bound < results["retry_since"]:
            results["retry_since"] = bound

    for row in rows:
        config = alerts_crud.to_config(row)
        detail: dict[str, Any] = {"alert_id": config.id, "alert_name": config.name, "new_matches": 0}
        try:
            user = db.get(User, config.user_id) if config.user_id else None
            for updated_at, tender in tenders:
                if not tender.id or alerts_crud.has_match(db, config.id, tender.id):
                    continue
                result = evaluate(config, tender, now=now)
                if not result.matched:
                    continue
                outcome = _dispatch_match(db, config, user, tender, result.matched_keywords, now)
                if outcome == "failed":
                    results["errors"] += 1
                    _retry_from(updated_at)
                    continue
                detail["new_matches"] += 1
                results["new_matches"] += 1
                if outcome == "emailed":
                    results["emails_sent"] += 1
                elif outcome == "queued":
                    results["queued_for_digest"] += 1
            results["alerts_processed"] += 1
        except Exception as e:
            db.rollback()
            results["errors"] += 1
            detail["error"] = str(e)
            _retry_from(tenders[0][0])
            logger.exception("[Matcher] Alert %s (%s) failed", config.id, config.name)
        results["details"].append(detail)

    logger.info(
        "[Matcher] %d alerts x %d tenders: %d new matches, %d emails, %d queued",
        results["alerts_processed"], len(tenders), results["new_matches"],
        results["emails_sent"], results["queued_for_digest"],
    )
    return results


# ── Digest pass ──────────────────────────────────────────────────────

def run_digests(db: Session, now: Optional[datetime] = None) -> dict[str, Any]:
    """Send due daily/weekly digests, one email per alert."""
    now = now or datetime.now(timezone.utc)
    results: dict[str, Any] = {"digests_sent": 0, "matches_notified": 0, "skipped": 0, "errors": 0}

    for row in alerts_crud.list_active_alerts(db):
        config = alerts_crud.to_config(row)
        es = config.email_settings
        if not es.enabled or es.frequency == EmailFrequency.IMMEDIATE:
            continue

        user = db.get(User, config.user_id) if config.user_id else None
        if not is_digest_due(config, owner_timezone(user), row.last_digest_at, now):
            continue

        pending = alerts_crud.list_pending_matches(db, config.id)
        if not pending:
            alerts_crud.mark_period_closed(db, config.id, now=now)
            continue

        to_address = notification_service.resolve_recipient(config, user)
        if not to_address:
            logger.warning("[Matcher] Digest for alert %s skipped: no recipient", config.id)
            results["skipped"] += 1
            continue

        items = [(to_snapshot(tender), match.matched_keywords or []) for match, tender in pending]
        try:
            notification_service.send_digest(to_address, config, items)
        except Exception:
            results["errors"] += 1
            logger.exception("[Matcher] Digest for alert %s failed, matches stay pending", config.id)
            continue

        alerts_crud.mark_digest_sent(db, config.id, [m.id for m, _ in pending], now=now)
        results["digests_sent"] += 1
        results["matches_notified"] += len(pending)

    if results["digests_sent"]:
        logger.info("[Matcher] Digests sent: %d (%d matches)", results["digests_sent"], results["matches_notified"])
    return results
