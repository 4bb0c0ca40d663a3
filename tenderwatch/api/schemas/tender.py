"""Tender schemas: read-only snapshot consumed by the alert engine."""
import enum
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, Field

from tenderwatch.api.schemas.base import CamelModel


class OrganizationType(str, enum.Enum):
    """Kind of organization publishing a tender."""

    GOVERNMENT = "government"
    PRIVATE = "private"
    SEMI_GOVERNMENT = "semi-government"
    NGO = "ngo"


class TenderStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"
    AWARDED = "awarded"
    CANCELLED = "cancelled"


class TenderPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TenderOrganization(CamelModel):
    name: Optional[str] = None
    type: Optional[str] = None


class TenderLocation(CamelModel):
    province: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None


class TenderDates(CamelModel):
    published: Optional[datetime] = None
    closing: Optional[datetime] = None


class TenderValue(CamelModel):
    amount: Optional[float] = None
    currency: Optional[str] = None


class TenderFinancials(CamelModel):
    estimated_value: Optional[TenderValue] = None


class TenderSnapshot(CamelModel):
    """
    Tender as seen by the matcher.
    Every field is optional: gates that need a missing field reject instead of failing.
    Accepts the portal's `_id` key as well as `id`.
    """

    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "_id"))
    title: Optional[str] = None
    description: Optional[str] = None
    reference_no: Optional[str] = None
    category: Optional[str] = None
    organization: Optional[TenderOrganization] = None
    location: Optional[TenderLocation] = None
    dates: Optional[TenderDates] = None
    financials: Optional[TenderFinancials] = None
    status: Optional[str] = None
    priority: Optional[str] = None

    @property
    def organization_type(self) -> Optional[str]:
        return self.organization.type if self.organization else None

    @property
    def closing_at(self) -> Optional[datetime]:
        return self.dates.closing if self.dates else None

    @property
    def estimated_amount(self) -> Optional[float]:
        if self.financials and self.financials.estimated_value:
            return self.financials.estimated_value.amount
        return None
