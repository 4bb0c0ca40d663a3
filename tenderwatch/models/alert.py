"""Alert configuration model: a user's saved tender-matching rule set."""
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from tenderwatch.models.base import Base


class AlertConfigurationRow(Base):
    """
    Alert configuration: scalar columns for identity/state/stats,
    JSON columns for the nested rule sections (validated by the pydantic schema).
    """

    __tablename__ = "alert_configurations"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, server_default="true", nullable=False, index=True)

    # --- Rule sections (JSON) ---
    keywords: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    categories: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    locations: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    organization_types: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    estimated_value: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    email_settings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    advanced_filters: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # --- Stats (written by the matcher only) ---
    total_matches: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    emails_sent: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    last_matched_tender_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    last_matched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_digest_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
        comment="When the last daily/weekly digest went out",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        onupdate=func.now(),
        server_default=func.now(),
    )
