"""Health check endpoints."""
from typing import Any

from fastapi import APIRouter, HTTPException
from sqlalchemy import func, select

from tenderwatch.db.crud.tenders import count_tenders
from tenderwatch.db.session import SessionLocal, check_db_connection
from tenderwatch.models.alert import AlertConfigurationRow
from tenderwatch.services.scheduler import get_scheduler_status

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Health check with database connectivity, tender and alert counts, scheduler state.
    Returns 503 if database is unreachable.
    """
    if not check_db_connection():
        raise HTTPException(
            status_code=503,
            detail={"status": "degraded", "db": "error"},
        )

    info: dict[str, Any] = {"status": "ok", "db": "ok"}

    db = SessionLocal()
    try:
        info["tenders"] = count_tenders(db)
        info["alerts"] = db.scalar(select(func.count()).select_from(AlertConfigurationRow)) or 0
        info["active_alerts"] = db.scalar(
            select(func.count())
            .select_from(AlertConfigurationRow)
            .where(AlertConfigurationRow.is_active.is_(True))
        ) or 0
    finally:
        db.close()

    info["scheduler"] = get_scheduler_status()
    return info
