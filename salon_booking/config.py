# salon_booking/config.py

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SALON_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./salon.db"
    database_echo: bool = False

    # Booking grid
    slot_minutes: int = Field(default=15, ge=1, le=1440)

    # Notification Scheduler
    reminder_windows_minutes: List[int] = Field(default_factory=lambda: [1440, 60])
    queue_next_position: int = Field(default=2, ge=1)
    sweep_interval_seconds: float = Field(default=300, gt=0)
    max_dispatch_retries: int = Field(default=3, ge=1)
    celery_broker_url: str = "redis://localhost:6379/0"

    # Outbound messaging gateway (unset = log only)
    messaging_url: Optional[str] = None
    messaging_token: Optional[str] = None
    messaging_timeout_seconds: float = 10.0

    # Owner login
    secret_key: str = "change-me-later"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    @field_validator("reminder_windows_minutes")
    @classmethod
    def _normalise_windows(cls, value: List[int]) -> List[int]:
        if any(minutes <= 0 for minutes in value):
            raise ValueError("reminder windows must be positive minute offsets")
        return sorted(set(value), reverse=True)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    logger.info(
        "settings loaded",
        extra={"database_url": settings.database_url, "slot_minutes": settings.slot_minutes},
    )
    return settings
