"""Alert configuration schemas.

Validation happens here, at construction time: the engine only ever sees
configurations that passed these models.
"""
import enum
import re
from datetime import datetime
from typing import Annotated, Any, Optional, Sequence

from pydantic import ConfigDict, EmailStr, Field, field_validator, model_validator

from tenderwatch.api.schemas.base import CamelModel
from tenderwatch.api.schemas.tender import (
    OrganizationType,
    TenderPriority,
    TenderSnapshot,
    TenderStatus,
)

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


class KeywordMatchType(str, enum.Enum):
    """How a keyword term is compared with a tender title or description."""

    EXACT = "exact"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class Currency(str, enum.Enum):
    LKR = "LKR"
    USD = "USD"
    EUR = "EUR"


class EmailFrequency(str, enum.Enum):
    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


def _dedupe(values: Sequence[str]) -> tuple[str, ...]:
    """Strip, drop blanks and case-insensitive duplicates, keep first spelling."""
    seen: set[str] = set()
    out = []
    for v in values:
        item = v.strip()
        key = item.casefold()
        if item and key not in seen:
            seen.add(key)
            out.append(item)
    return tuple(out)


class AlertKeyword(CamelModel):
    model_config = ConfigDict(frozen=True)

    term: str = Field(..., min_length=1, max_length=50)
    match_type: KeywordMatchType

    @field_validator("term")
    @classmethod
    def term_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Keyword is required")
        return v.strip()


class LocationFilter(CamelModel):
    model_config = ConfigDict(frozen=True)

    provinces: tuple[str, ...] = ()
    districts: tuple[str, ...] = ()
    cities: tuple[str, ...] = ()

    @field_validator("provinces", "districts", "cities")
    @classmethod
    def clean(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _dedupe(v)

    def is_empty(self) -> bool:
        return not (self.provinces or self.districts or self.cities)


class EstimatedValueFilter(CamelModel):
    model_config = ConfigDict(frozen=True)

    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)
    currency: Currency = Currency.LKR

    @model_validator(mode="after")
    def check_range(self) -> "EstimatedValueFilter":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("Minimum value cannot be greater than maximum value")
        return self

    def has_bounds(self) -> bool:
        return self.min is not None or self.max is not None


class EmailSettings(CamelModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    frequency: EmailFrequency = EmailFrequency.IMMEDIATE
    custom_email: Optional[EmailStr] = None
    daily_summary_time: str = "09:00"

    @field_validator("custom_email", mode="before")
    @classmethod
    def empty_email_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("daily_summary_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Accept H:MM or HH:MM (24h), store zero-padded HH:MM."""
        m = TIME_PATTERN.match(v.strip())
        if not m:
            raise ValueError("Invalid time format, expected HH:MM (24h)")
        return f"{int(m.group(1)):02d}:{m.group(2)}"

    @property
    def summary_hour_minute(self) -> tuple[int, int]:
        hour, minute = self.daily_summary_time.split(":")
        return int(hour), int(minute)


class AdvancedFilters(CamelModel):
    model_config = ConfigDict(frozen=True)

    exclude_keywords: tuple[Annotated[str, Field(max_length=50)], ...] = Field((), max_length=10)
    min_days_until_closing: Optional[int] = Field(None, ge=0, le=365)
    max_days_until_closing: Optional[int] = Field(None, ge=0, le=365)
    included_statuses: tuple[TenderStatus, ...] = ()
    included_priorities: tuple[TenderPriority, ...] = ()

    @field_validator("exclude_keywords")
    @classmethod
    def clean_excludes(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        # A blank exclude term would be a substring of every tender
        return _dedupe(v)

    @field_validator("included_statuses", "included_priorities")
    @classmethod
    def unique_members(cls, v: tuple) -> tuple:
        return tuple(dict.fromkeys(v))

    @model_validator(mode="after")
    def check_days(self) -> "AdvancedFilters":
        lo, hi = self.min_days_until_closing, self.max_days_until_closing
        if lo is not None and hi is not None and lo > hi:
            raise ValueError("Minimum days cannot be greater than maximum days")
        return self


class AlertStats(CamelModel):
    """Counters written only by the matching/dispatch process."""

    model_config = ConfigDict(frozen=True)

    total_matches: int = Field(0, ge=0)
    emails_sent: int = Field(0, ge=0)
    last_matched_tender: Optional[str] = None
    last_matched_at: Optional[datetime] = None


class AlertRuleBase(CamelModel):
    """User-editable part of an alert configuration."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: bool = True
    keywords: tuple[AlertKeyword, ...] = Field(..., min_length=1, max_length=20)
    categories: tuple[str, ...] = Field((), max_length=10)
    locations: LocationFilter = Field(default_factory=LocationFilter)
    organization_types: tuple[OrganizationType, ...] = ()
    estimated_value: Optional[EstimatedValueFilter] = None
    email_settings: EmailSettings = Field(default_factory=EmailSettings)
    advanced_filters: AdvancedFilters = Field(default_factory=AdvancedFilters)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Alert name is required")
        return v.strip()

    @field_validator("categories")
    @classmethod
    def clean_categories(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _dedupe(v)

    @field_validator("organization_types")
    @classmethod
    def unique_types(cls, v: tuple[OrganizationType, ...]) -> tuple[OrganizationType, ...]:
        return tuple(dict.fromkeys(v))


class AlertConfigurationCreate(AlertRuleBase):
    """Schema for creating an alert configuration (form submit)."""


class AlertConfigurationUpdate(CamelModel):
    """Partial update; merged onto the stored configuration and re-validated as a whole."""

    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    keywords: Optional[list[AlertKeyword]] = None
    categories: Optional[list[str]] = None
    locations: Optional[LocationFilter] = None
    organization_types: Optional[list[OrganizationType]] = None
    estimated_value: Optional[EstimatedValueFilter] = None
    email_settings: Optional[EmailSettings] = None
    advanced_filters: Optional[AdvancedFilters] = None


class AlertConfiguration(AlertRuleBase):
    """A validated, immutable alert configuration as stored and evaluated."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    user_id: Optional[str] = None
    stats: AlertStats = Field(default_factory=AlertStats)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AlertListResponse(CamelModel):
    alerts: list[AlertConfiguration]
    count: int


class MatchResult(CamelModel):
    """Verdict of one evaluation."""

    model_config = ConfigDict(frozen=True)

    matched: bool
    matched_keywords: list[str] = Field(default_factory=list)


class CorpusTestResult(CamelModel):
    """Outcome of replaying a configuration against a tender sample."""

    matching_tenders: list[TenderSnapshot] = Field(default_factory=list)
    match_count: int = 0
    total_tested: int = 0


class SendTestEmailResponse(CamelModel):
    success: bool
    message_id: str


class AlertsByFrequency(CamelModel):
    immediate: int = 0
    daily: int = 0
    weekly: int = 0


class RecentMatch(CamelModel):
    alert_id: str
    alert_name: str
    last_matched_at: datetime
    total_matches: int


class AlertSummaryStats(CamelModel):
    """Aggregate statistics across one user's alerts."""

    total_alerts: int = 0
    active_alerts: int = 0
    inactive_alerts: int = 0
    total_matches: int = 0
    total_emails_sent: int = 0
    alerts_by_frequency: AlertsByFrequency = Field(default_factory=AlertsByFrequency)
    recent_matches: list[RecentMatch] = Field(default_factory=list)
