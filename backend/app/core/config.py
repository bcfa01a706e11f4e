# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment")
    database_url: str = Field(
        default="sqlite+pysqlite:///./flightdesk.db",
        description="SQLAlchemy URL of the transactional store",
    )
    sql_echo: bool = Field(default=False, description="Echo SQL statements (debugging only)")

    # Scheduling
    default_timezone: str = Field(
        default="Pacific/Auckland",
        description="IANA zone used when a tenant has no timezone of its own",
    )

    # Invoicing
    invoice_due_days: int = Field(
        default=7, ge=0, description="Days after approval before a check-in invoice is due"
    )
    invoice_number_prefix: str = Field(default="INV", min_length=1, max_length=10)

    # Check-in corrections (audit requirement)
    correction_reason_min_length: int = Field(default=10, ge=1)
    correction_reason_max_length: int = Field(default=2000, ge=10)

    # Identity is resolved by the upstream gateway and forwarded as headers.
    trusted_auth_headers: bool = Field(default=True)

    slow_operation_threshold_seconds: float = Field(default=1.0, gt=0)

    # Use ConfigDict instead of Config class (Pydantic V2 style)
    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        if value not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: Any) -> str:
        return str(value or "development").strip().lower()

    def get_database_url(self) -> str:
        """Get the database URL for the current context."""
        return self.database_url

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
