"""All SQLAlchemy models, registered on Base.metadata when this package is imported.

Usage:
    from tenderwatch.models import AlertConfigurationRow, AlertMatch, Tender, User
"""
from tenderwatch.models.base import Base
from tenderwatch.models.alert import AlertConfigurationRow
from tenderwatch.models.alert_match import AlertMatch
from tenderwatch.models.tender import Tender
from tenderwatch.models.user import User

__all__ = [
    "Base",
    "AlertConfigurationRow",
    "AlertMatch",
    "Tender",
    "User",
]
