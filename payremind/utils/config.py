"""Application configuration.

Pydantic-based settings for storage locations, the daily trigger, message
formatting and channel transports. Every field can be overridden through
environment variables with prefix ``PAYREMIND_`` or a ``.env`` file.

Environment Variables:
- PAYREMIND_DATA_DIR: Directory holding orders.json and notificationSettings.json
- PAYREMIND_SCHEDULER_HOUR / PAYREMIND_SCHEDULER_MINUTE: Daily trigger time (default 09:00)
- PAYREMIND_TIMEZONE: IANA zone used for calendar days and the trigger (default UTC)
- PAYREMIND_TRANSPORT: ``console`` (log only) or ``live`` (SMTP + WhatsApp Cloud API)
"""

from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """payremind runtime configuration.

    Example:
        >>> settings = Settings(scheduler_hour=8)
        >>> settings.orders_path.name
        'orders.json'
    """

    model_config = SettingsConfigDict(
        env_prefix="PAYREMIND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Directory for JSON data files")
    orders_file: str = Field(default="orders.json")
    notification_settings_file: str = Field(default="notificationSettings.json")

    # Scheduler
    scheduler_hour: int = Field(default=9, ge=0, le=23)
    scheduler_minute: int = Field(default=0, ge=0, le=59)
    poll_interval_seconds: int = Field(
        default=60, ge=1, le=60, description="Seconds between trigger checks"
    )
    timezone: str = Field(default="UTC", description="IANA timezone name")

    # Message formatting
    store_name: str = Field(default="Your Store")
    payment_link_base: str = Field(default="https://yourstore.com/pay")
    currency_symbol: str = Field(default="$")
    due_date_format: str = Field(default="%m/%d/%Y")
    stats_upcoming_days_default: int = Field(
        default=3, ge=0, description="Upcoming window for stats when no settings are stored"
    )

    # Transport
    transport: Literal["console", "live"] = Field(default="console")

    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=587)
    smtp_username: str | None = Field(default=None)
    smtp_password: str | None = Field(default=None)
    smtp_use_tls: bool = Field(default=True)
    smtp_sender: str = Field(default="billing@yourstore.com")

    whatsapp_api_base: str = Field(default="https://graph.facebook.com/v19.0")
    whatsapp_phone_number_id: str | None = Field(default=None)
    whatsapp_token: str | None = Field(default=None)
    whatsapp_timeout_seconds: float = Field(default=10.0, gt=0)

    # Logging
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    dev_mode: bool = Field(default=True)

    # Metrics
    metrics_enabled: bool = Field(default=False)
    metrics_port: int = Field(default=8000)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA zone names early."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("payment_link_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def orders_path(self) -> Path:
        return self.data_dir / self.orders_file

    @property
    def notification_settings_path(self) -> Path:
        return self.data_dir / self.notification_settings_file


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings(force_reload: bool = False) -> Settings:
    """Get or create application settings.

    Args:
        force_reload: Force reload from environment

    Returns:
        Settings instance
    """
    global _settings

    if _settings is None or force_reload:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """Re-read settings from the environment."""
    return get_settings(force_reload=True)
