"""Account owning alert configurations (credentials are handled elsewhere)."""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tenderwatch.models.base import Base


class User(Base):
    """Portal account: default alert email and local timezone for digests."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True,
    )
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    timezone: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True,
        comment="IANA timezone name for digest send times (e.g. Asia/Colombo)",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        default=func.now(),
        server_default=func.now(),
    )
