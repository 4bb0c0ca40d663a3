"""Application configuration using pydantic-settings."""
import re
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


POSTGRES_SCHEMES = ("postgres", "postgresql", "postgresql+psycopg")


class Settings(BaseSettings):
    """TenderWatch settings (environment variables, then .env)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = "local"
    app_name: str = "tenderwatch-api"
    database_url: str = Field(
        "sqlite:///./dev.db",
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
    )
    allowed_origins: str = "*"
    log_level: str = "INFO"
    app_url: str = Field("http://localhost:5173", validation_alias="APP_URL")

    # Owner timezone fallback for digest send times
    default_timezone: str = Field("Asia/Colombo", validation_alias="DEFAULT_TIMEZONE")

    # Email (notifications)
    email_mode: str = Field("file", validation_alias="EMAIL_MODE")  # "file" | "smtp"
    email_from: Optional[str] = Field(None, validation_alias="EMAIL_FROM")
    email_smtp_host: Optional[str] = Field(None, validation_alias="EMAIL_SMTP_HOST")
    email_smtp_port: Optional[int] = Field(None, validation_alias="EMAIL_SMTP_PORT")
    email_smtp_username: Optional[str] = Field(None, validation_alias="EMAIL_SMTP_USERNAME")
    email_smtp_password: Optional[str] = Field(None, validation_alias="EMAIL_SMTP_PASSWORD")
    email_smtp_use_tls: bool = Field(True, validation_alias="EMAIL_SMTP_USE_TLS")
    email_outbox_dir: str = Field("data/outbox", validation_alias="EMAIL_OUTBOX_DIR")

    # Scheduler
    scheduler_enabled: bool = Field(False, validation_alias="SCHEDULER_ENABLED")
    match_interval_minutes: int = Field(15, validation_alias="MATCH_INTERVAL_MINUTES")
    digest_check_minutes: int = Field(10, validation_alias="DIGEST_CHECK_MINUTES")
    match_lookback_hours: int = Field(24, validation_alias="MATCH_LOOKBACK_HOURS")

    # Alert API
    test_alert_max_limit: int = Field(100, validation_alias="TEST_ALERT_MAX_LIMIT")
    recent_matches_limit: int = Field(5, validation_alias="RECENT_MATCHES_LIMIT")

    @field_validator("database_url")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """sqlite passes through; postgres URLs use the psycopg driver with sslmode=require."""
        if v.startswith("sqlite"):
            return v

        scheme, sep, rest = v.partition("://")
        if not sep or scheme not in POSTGRES_SCHEMES:
            raise ValueError("DATABASE_URL must be a sqlite or postgresql URL")
        v = f"postgresql+psycopg://{rest}"

        if "sslmode=" in v:
            return re.sub(r"sslmode=[^&]+", "sslmode=require", v)
        return f"{v}{'&' if '?' in v else '?'}sslmode=require"

    @field_validator("default_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA timezone names early."""
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def allowed_origins_list(self) -> list[str]:
        """Get allowed origins as a list."""
        if self.allowed_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",")]


settings = Settings()
