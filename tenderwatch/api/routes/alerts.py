"""Alert configuration endpoints: CRUD, toggle, corpus test, test email (owner only)."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy.orm import Session

from tenderwatch.api.deps import get_current_user
from tenderwatch.api.schemas.alert import (
    AlertConfiguration,
    AlertConfigurationCreate,
    AlertConfigurationUpdate,
    AlertListResponse,
    AlertSummaryStats,
    CorpusTestResult,
    SendTestEmailResponse,
)
from tenderwatch.core.config import settings
from tenderwatch.db.crud import alerts as alerts_crud
from tenderwatch.db.crud.tenders import list_recent_tenders, to_snapshot
from tenderwatch.db.session import get_db
from tenderwatch.models.alert import AlertConfigurationRow
from tenderwatch.models.user import User
from tenderwatch.services import notification_service
from tenderwatch.services.alert_engine import test_against_corpus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


def _owned_alert(db: Session, alert_id: str, user: User) -> AlertConfigurationRow:
    row = alerts_crud.get_alert(db, alert_id, user_id=user.id)
    if not row:
        raise HTTPException(status_code=404, detail="Alert configuration not found")
    return row


@router.get("", response_model=AlertListResponse)
async def get_alerts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AlertListResponse:
    """List the current user's alerts."""
    alerts = [alerts_crud.to_config(r) for r in alerts_crud.list_alerts(db, current_user.id)]
    return AlertListResponse(alerts=alerts, count=len(alerts))


# Declared before /{alert_id} so "stats" is not taken for an id
@router.get("/stats", response_model=AlertSummaryStats)
async def get_alert_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AlertSummaryStats:
    """Aggregate counters across the current user's alerts."""
    return alerts_crud.summary_stats(db, current_user.id, recent_limit=settings.recent_matches_limit)


@router.get("/{alert_id}", response_model=AlertConfiguration)
async def get_alert_endpoint(
    alert_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AlertConfiguration:
    return alerts_crud.to_config(_owned_alert(db, alert_id, current_user))


@router.post("", response_model=AlertConfiguration, status_code=201)
async def post_alert(
    body: AlertConfigurationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AlertConfiguration:
    """Create an alert for the current user."""
    row = alerts_crud.create_alert(db, current_user.id, body)
    return alerts_crud.to_config(row)


@router.put("/{alert_id}", response_model=AlertConfiguration)
async def put_alert(
    alert_id: str,
    body: AlertConfigurationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AlertConfiguration:
    """
    Partial update: only the fields present in the body change, nested
    sections are merged, and the merged rule is validated as a whole.
    """
    row = _owned_alert(db, alert_id, current_user)
    try:
        rule = alerts_crud.merge_update(alerts_crud.to_config(row), body)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    row = alerts_crud.update_alert(db, row, rule)
    return alerts_crud.to_config(row)


@router.delete("/{alert_id}", status_code=204)
async def del_alert(
    alert_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    """Delete an alert and its stored matches."""
    _owned_alert(db, alert_id, current_user)
    if not alerts_crud.delete_alert(db, alert_id):
        raise HTTPException(status_code=404, detail="Alert configuration not found")


@router.patch("/{alert_id}/toggle", response_model=AlertConfiguration)
async def patch_alert_toggle(
    alert_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AlertConfiguration:
    """Flip isActive."""
    row = alerts_crud.toggle_alert(db, _owned_alert(db, alert_id, current_user))
    return alerts_crud.to_config(row)


@router.post("/{alert_id}/test", response_model=CorpusTestResult)
async def post_alert_test(
    alert_id: str,
    limit: int = Query(10, ge=1, le=100, description="Number of recent tenders to test against"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CorpusTestResult:
    """Replay the alert against the most recent tenders. Stats are not touched."""
    config = alerts_crud.to_config(_owned_alert(db, alert_id, current_user))
    if not config.is_active:
        raise HTTPException(status_code=409, detail="Alert configuration is inactive")
    limit = min(limit, settings.test_alert_max_limit)
    tenders = [to_snapshot(t) for t in list_recent_tenders(db, limit=limit)]
    return test_against_corpus(config, tenders, limit=limit)


@router.post("/{alert_id}/send-test-email", response_model=SendTestEmailResponse)
async def post_alert_test_email(
    alert_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SendTestEmailResponse:
    """Send a sample email to the alert's recipient."""
    config = alerts_crud.to_config(_owned_alert(db, alert_id, current_user))
    to_address = notification_service.resolve_recipient(config, current_user)
    if not to_address:
        raise HTTPException(status_code=400, detail="No recipient email for this alert")
    try:
        message_id = notification_service.send_test_email(to_address, config)
    except Exception as e:
        logger.exception("Test email for alert %s failed", alert_id)
        raise HTTPException(status_code=502, detail=f"Email delivery failed: {e}")
    return SendTestEmailResponse(success=True, message_id=message_id)
