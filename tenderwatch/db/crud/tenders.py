"""CRUD operations for tenders (read side of the alert engine)."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from tenderwatch.api.schemas.tender import (
    TenderDates,
    TenderFinancials,
    TenderLocation,
    TenderOrganization,
    TenderSnapshot,
    TenderValue,
)
from tenderwatch.models.tender import Tender


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Store UTC; SQLite drops tzinfo without converting."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_snapshot(row: Tender) -> TenderSnapshot:
    """Convert a Tender row to the nested snapshot the engine reads."""
    value = None
    if row.estimated_value is not None or row.estimated_value_currency:
        value = TenderValue(
            amount=float(row.estimated_value) if row.estimated_value is not None else None,
            currency=row.estimated_value_currency,
        )
    return TenderSnapshot(
        id=row.id,
        title=row.title,
        description=row.description,
        reference_no=row.reference_no,
        category=row.category,
        organization=TenderOrganization(name=row.organization_name, type=row.organization_type),
        location=TenderLocation(province=row.province, district=row.district, city=row.city),
        dates=TenderDates(published=row.published_at, closing=row.closing_at),
        financials=TenderFinancials(estimated_value=value),
        status=row.status,
        priority=row.priority,
    )


def _apply_snapshot(row: Tender, snap: TenderSnapshot) -> None:
    org = snap.organization
    loc = snap.location
    dates = snap.dates
    value = snap.financials.estimated_value if snap.financials else None

    row.title = snap.title
    row.description = snap.description
    row.reference_no = snap.reference_no
    row.category = snap.category
    row.organization_name = org.name if org else None
    row.organization_type = org.type if org else None
    row.province = loc.province if loc else None
    row.district = loc.district if loc else None
    row.city = loc.city if loc else None
    row.published_at = _as_utc(dates.published) if dates else None
    row.closing_at = _as_utc(dates.closing) if dates else None
    row.estimated_value = Decimal(str(value.amount)) if value and value.amount is not None else None
    row.estimated_value_currency = value.currency if value else None
    row.status = snap.status
    row.priority = snap.priority


def upsert_tender(db: Session, snap: TenderSnapshot, commit: bool = True) -> tuple[Tender, bool]:
    """Insert or update a tender by id. Returns (row, created)."""
    now = datetime.now(timezone.utc)
    row = db.get(Tender, snap.id) if snap.id else None
    created = row is None
    if created:
        row = Tender(created_at=now)
        if snap.id:
            row.id = snap.id
        db.add(row)
    _apply_snapshot(row, snap)
    row.updated_at = now
    if commit:
        db.commit()
        db.refresh(row)
    return row, created


def get_tender(db: Session, tender_id: str) -> Optional[Tender]:
    """Get a tender by ID."""
    return db.get(Tender, tender_id)


def list_recent_tenders(db: Session, limit: int = 10) -> list[Tender]:
    """Most recent tenders first (publication date, then insertion time)."""
    return (
        db.query(Tender)
        .order_by(Tender.published_at.desc().nulls_last(), Tender.created_at.desc())
        .limit(limit)
        .all()
    )


def list_tenders_since(db: Session, since: datetime) -> list[Tender]:
    """Tenders inserted or updated after `since`, oldest first."""
    return (
        db.query(Tender)
        .filter(Tender.updated_at > _as_utc(since))
        .order_by(Tender.updated_at.asc())
        .all()
    )


def count_tenders(db: Session) -> int:
    return db.query(func.count(Tender.id)).scalar() or 0
