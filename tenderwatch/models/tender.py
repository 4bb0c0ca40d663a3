"""Tender model: procurement opportunity records pushed by the tender source."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from tenderwatch.models.base import Base


class Tender(Base):
    """
    Tender (government / private procurement notice).
    Table name: tenders. Nested portal fields are flattened into columns.
    """

    __tablename__ = "tenders"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    reference_no: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    title: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    # --- Organization ---
    organization_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    organization_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # --- Location ---
    province: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    district: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # --- Dates ---
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    closing_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    # --- Financials ---
    estimated_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    estimated_value_currency: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # draft, published, ...
    priority: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # low .. urgent

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        onupdate=func.now(),
        server_default=func.now(),
    )
