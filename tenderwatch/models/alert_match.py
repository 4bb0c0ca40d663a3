"""Alert match model: which tenders matched which alert configurations."""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from tenderwatch.models.base import Base


class AlertMatch(Base):
    """One recorded match; notified_at stays NULL until the digest carrying it is sent."""

    __tablename__ = "alert_matches"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    alert_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("alert_configurations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tender_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    matched_keywords: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    matched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        server_default=func.now(),
    )
    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("alert_id", "tender_id", name="uq_alert_match"),
    )
