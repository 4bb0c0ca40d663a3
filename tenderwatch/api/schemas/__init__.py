"""API schemas."""
from tenderwatch.api.schemas.alert import (
    AlertConfiguration,
    AlertConfigurationCreate,
    AlertConfigurationUpdate,
    AlertKeyword,
    MatchResult,
)
from tenderwatch.api.schemas.tender import TenderSnapshot

__all__ = [
    "AlertConfiguration",
    "AlertConfigurationCreate",
    "AlertConfigurationUpdate",
    "AlertKeyword",
    "MatchResult",
    "TenderSnapshot",
]
