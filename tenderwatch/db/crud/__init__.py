"""CRUD operations."""
from tenderwatch.db.crud.alerts import (
    create_alert,
    delete_alert,
    get_alert,
    list_alerts,
    toggle_alert,
    update_alert,
)
from tenderwatch.db.crud.tenders import get_tender, list_recent_tenders, upsert_tender

__all__ = [
    "create_alert",
    "list_alerts",
    "get_alert",
    "update_alert",
    "toggle_alert",
    "delete_alert",
    "upsert_tender",
    "get_tender",
    "list_recent_tenders",
]
