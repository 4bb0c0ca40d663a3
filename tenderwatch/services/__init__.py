"""Application services."""
from tenderwatch.services.alert_engine import evaluate, filter_active, record_match, test_against_corpus
from tenderwatch.services.notification_service import send_digest, send_match_notification, send_test_email

__all__ = [
    "evaluate",
    "filter_active",
    "record_match",
    "test_against_corpus",
    "send_digest",
    "send_match_notification",
    "send_test_email",
]
