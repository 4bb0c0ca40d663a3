"""Alert rule engine: decide whether one tender matches one alert configuration.

Gates run in a fixed order and short-circuit on the first rejection:

  1. status          (included_statuses, empty = any)
  2. priority        (included_priorities, empty = any)
  3. category        (case-insensitive exact, empty = any)
  4. organization    (organization_types, empty = any)
  5. location        (OR across populated province/district/city lists)
  6. value range     (inclusive [min, max], currency is descriptive only)
  7. closing window  (min/max days until closing)
  8. exclude terms   (case-insensitive substring of title or description)
  9. keywords        (OR across entries, each with its own match type)

Evaluation is pure: no I/O, no mutation of the configuration or the tender.
A tender missing a field an active gate needs is a non-match, never an error.
The engine does not look at is_active; callers filter inactive configurations
before calling evaluate (see filter_active).
"""
import logging
import math
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

from tenderwatch.api.schemas.alert import (
    AlertConfiguration,
    AlertKeyword,
    CorpusTestResult,
    KeywordMatchType,
    MatchResult,
)
from tenderwatch.api.schemas.tender import TenderSnapshot

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

NO_MATCH = MatchResult(matched=False)


# ── Helpers ──────────────────────────────────────────────────────────

def _fold(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


def _utc(dt: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_until_closing(closing: datetime, now: datetime) -> float:
    """Fractional days between now and the closing time (negative once closed)."""
    return (_utc(closing) - _utc(now)).total_seconds() / SECONDS_PER_DAY


def _texts(tender: TenderSnapshot) -> list[str]:
    return [t for t in (_fold(tender.title), _fold(tender.description)) if t]


def _reject(config: AlertConfiguration, tender: TenderSnapshot, gate: str, missing: Optional[str] = None) -> MatchResult:
    if missing:
        logger.debug("Alert %s: tender %s lacks %s for %s gate", config.id, tender.id, missing, gate)
    return NO_MATCH


# ── Keyword matching ─────────────────────────────────────────────────

_MATCHERS: dict[KeywordMatchType, Callable[[str, str], bool]] = {
    KeywordMatchType.EXACT: lambda text, term: text == term,
    KeywordMatchType.CONTAINS: lambda text, term: term in text,
    KeywordMatchType.STARTS_WITH: lambda text, term: text.startswith(term),
    KeywordMatchType.ENDS_WITH: lambda text, term: text.endswith(term),
}


def keyword_matches(keyword: AlertKeyword, texts: Iterable[str]) -> bool:
    """True if the keyword matches any of the (already case-folded) texts."""
    term = _fold(keyword.term)
    if not term:
        return False
    matcher = _MATCHERS[keyword.match_type]
    return any(matcher(text, term) for text in texts)


# ── Gates ────────────────────────────────────────────────────────────

def _member(value: Optional[str], allowed: Iterable) -> bool:
    wanted = {_fold(getattr(a, "value", a)) for a in allowed}
    return _fold(value) in wanted


def _location_ok(config: AlertConfiguration, tender: TenderSnapshot) -> bool:
    loc = config.locations
    tloc = tender.location
    if tloc is None:
        return False
    dimensions = (
        (loc.provinces, tloc.province),
        (loc.districts, tloc.district),
        (loc.cities, tloc.city),
    )
    for configured, actual in dimensions:
        if configured and actual and _member(actual, configured):
            return True
    return False


def _value_ok(config: AlertConfiguration, amount: Optional[float]) -> bool:
    ev = config.estimated_value
    if amount is None:
        return False
    if ev.min is not None and amount < ev.min:
        return False
    if ev.max is not None and amount > ev.max:
        return False
    return True


def _closing_ok(config: AlertConfiguration, closing: datetime, now: datetime) -> bool:
    """
    min bound: whole days left (floor), so 2d23h does not satisfy min=3.
    max bound: started days left (ceil), so 3d1h does not satisfy max=3.
    """
    adv = config.advanced_filters
    days = days_until_closing(closing, now)
    if adv.min_days_until_closing is not None and math.floor(days) < adv.min_days_until_closing:
        return False
    if adv.max_days_until_closing is not None and math.ceil(days) > adv.max_days_until_closing:
        return False
    return True


# ── Public API ───────────────────────────────────────────────────────

def evaluate(
    config: AlertConfiguration,
    tender: TenderSnapshot,
    now: Optional[datetime] = None,
) -> MatchResult:
    """Run all gates for one (configuration, tender) pair."""
    now = now or datetime.now(timezone.utc)
    adv = config.advanced_filters

    if adv.included_statuses:
        if not tender.status:
            return _reject(config, tender, "status", "status")
        if not _member(tender.status, adv.included_statuses):
            return NO_MATCH

    if adv.included_priorities:
        if not tender.priority:
            return _reject(config, tender, "priority", "priority")
        if not _member(tender.priority, adv.included_priorities):
            return NO_MATCH

    if config.categories:
        if not tender.category:
            return _reject(config, tender, "category", "category")
        if not _member(tender.category, config.categories):
            return NO_MATCH

    if config.organization_types:
        if not tender.organization_type:
            return _reject(config, tender, "organization", "organization.type")
        if not _member(tender.organization_type, config.organization_types):
            return NO_MATCH

    if not config.locations.is_empty():
        if tender.location is None:
            return _reject(config, tender, "location", "location")
        if not _location_ok(config, tender):
            return NO_MATCH

    if config.estimated_value is not None and config.estimated_value.has_bounds():
        amount = tender.estimated_amount
        if amount is None:
            return _reject(config, tender, "value", "financials.estimatedValue.amount")
        if not _value_ok(config, amount):
            return NO_MATCH

    if adv.min_days_until_closing is not None or adv.max_days_until_closing is not None:
        closing = tender.closing_at
        if closing is None:
            return _reject(config, tender, "closing", "dates.closing")
        if not _closing_ok(config, closing, now):
            return NO_MATCH

    texts = _texts(tender)

    for term in adv.exclude_keywords:
        folded = _fold(term)
        if folded and any(folded in text for text in texts):
            return NO_MATCH

    if not texts:
        return _reject(config, tender, "keyword", "title/description")

    matched = [kw.term for kw in config.keywords if keyword_matches(kw, texts)]
    if not matched:
        return NO_MATCH
    return MatchResult(matched=True, matched_keywords=list(dict.fromkeys(matched)))


def filter_active(configs: Iterable[AlertConfiguration]) -> list[AlertConfiguration]:
    """Keep only configurations that may be evaluated."""
    return [c for c in configs if c.is_active]


def test_against_corpus(
    config: AlertConfiguration,
    tenders: Sequence[TenderSnapshot],
    limit: int,
    now: Optional[datetime] = None,
) -> CorpusTestResult:
    """
    Replay a configuration against up to `limit` tenders (caller supplies
    most-recent-first ordering). Read-only: stats are not touched.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")
    now = now or datetime.now(timezone.utc)
    sample = list(tenders[:limit])
    matching = [t for t in sample if evaluate(config, t, now=now).matched]
    return CorpusTestResult(
        matching_tenders=matching,
        match_count=len(matching),
        total_tested=len(sample),
    )


# Not a pytest test despite the name
test_against_corpus.__test__ = False


def record_match(
    config: AlertConfiguration,
    tender: TenderSnapshot,
    email_sent: bool,
    now: Optional[datetime] = None,
) -> AlertConfiguration:
    """Return a copy of config with stats updated for one confirmed match."""
    now = now or datetime.now(timezone.utc)
    stats = config.stats.model_copy(
        update={
            "total_matches": config.stats.total_matches + 1,
            "emails_sent": config.stats.emails_sent + (1 if email_sent else 0),
            "last_matched_tender": tender.id,
            "last_matched_at": now,
        }
    )
    return config.model_copy(update={"stats": stats})
