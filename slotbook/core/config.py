# slotbook/core/config.py
"""
Application settings for slotbook.

Values come from environment variables (case-insensitive) and an optional
``.env`` file next to the working directory. The slot catalogue and credit
packs are part of configuration: they are fixed for the life of a process.
"""

from datetime import time
import logging
import os
import re
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

if not os.getenv("CI"):
    load_dotenv()

_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

WEEKDAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class SlotConfig(BaseModel):
    """One recurring daily window as written in configuration."""

    code: str
    label: str = ""
    start: time
    end: time
    weekdays: List[int] = Field(
        default_factory=lambda: [1, 2, 3, 4, 5],
        description="ISO weekdays (1=Monday .. 7=Sunday) on which the slot is offered",
    )
    credits: Optional[int] = Field(
        default=None,
        description="Credit cost override; falls back to credits_per_slot",
    )

    @field_validator("weekdays")
    @classmethod
    def _validate_weekdays(cls, value: List[int]) -> List[int]:
        for day in value:
            if day < 1 or day > 7:
                raise ValueError(f"Invalid ISO weekday {day}; expected 1..7")
        return sorted(set(value))

    @model_validator(mode="after")
    def _validate_window(self) -> "SlotConfig":
        if self.start >= self.end:
            raise ValueError(f"Slot {self.code} must start before it ends")
        if self.credits is not None and self.credits <= 0:
            raise ValueError(f"Slot {self.code} credit cost must be positive")
        return self


class CreditPackConfig(BaseModel):
    """A purchasable bundle of session credits."""

    code: str
    name: str
    credits: int = Field(gt=0)
    price_minor: int = Field(ge=0, description="Total price in minor currency units")
    discount_percent: int = Field(default=0, ge=0, le=100)


def _default_slots() -> List[SlotConfig]:
    return [
        SlotConfig(code="AM1", label="Early morning", start=time(7, 30), end=time(9, 30)),
        SlotConfig(code="AM2", label="Late morning", start=time(9, 30), end=time(11, 30)),
    ]


def _default_credit_packs() -> List[CreditPackConfig]:
    return [
        CreditPackConfig(code="single", name="Single session", credits=1, price_minor=2500),
        CreditPackConfig(code="pack5", name="5 sessions", credits=5, price_minor=11875, discount_percent=5),
        CreditPackConfig(code="pack10", name="10 sessions", credits=10, price_minor=22500, discount_percent=10),
        CreditPackConfig(code="pack20", name="20 sessions", credits=20, price_minor=42500, discount_percent=15),
    ]


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment name")
    log_level: str = Field(default="INFO", description="Root log level")

    database_url: str = Field(
        default="sqlite:///./slotbook.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = False
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for cross-process locks and the Celery broker",
    )
    lock_namespace: str = "slotbook"
    lock_ttl_seconds: int = Field(default=30, gt=0)

    timezone: str = Field(default="Europe/London", description="Gym local timezone")
    default_location_id: str = "elevate"

    booking_horizon_days: int = Field(default=28, ge=0)
    operating_start: Optional[str] = Field(
        default=None, description="First operating month (YYYY-MM), inclusive"
    )
    operating_end: Optional[str] = Field(
        default=None, description="Last operating month (YYYY-MM), inclusive"
    )

    credits_per_slot: int = Field(default=1, gt=0)
    require_manual_approval: bool = False
    late_cancel_cutoff_hours: Optional[int] = Field(
        default=None,
        ge=0,
        description="Cancelling closer than this to the start forfeits the credit",
    )
    status_warning_threshold: int = Field(default=2, ge=1)
    booking_timeout_seconds: float = Field(default=10.0, gt=0)

    currency: str = "GBP"
    slots: List[SlotConfig] = Field(default_factory=_default_slots)
    credit_packs: List[CreditPackConfig] = Field(default_factory=_default_credit_packs)

    payment_provider: Literal["fake", "stripe"] = "fake"
    stripe_secret_key: Optional[SecretStr] = None

    sweep_interval_minutes: int = Field(default=15, gt=0)
    block_fill_interval_minutes: int = Field(default=60, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("operating_start", "operating_end")
    @classmethod
    def _validate_month(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not _MONTH_PATTERN.match(value):
            raise ValueError("Operating months must be formatted YYYY-MM")
        return value

    @model_validator(mode="after")
    def _validate_catalogue(self) -> "Settings":
        codes = [slot.code for slot in self.slots]
        if len(codes) != len(set(codes)):
            raise ValueError("Slot codes must be unique")
        pack_codes = [pack.code for pack in self.credit_packs]
        if len(pack_codes) != len(set(pack_codes)):
            raise ValueError("Credit pack codes must be unique")
        if self.operating_start and self.operating_end and self.operating_start > self.operating_end:
            raise ValueError("operating_start must not be after operating_end")
        if self.payment_provider == "stripe" and self.stripe_secret_key is None:
            logger.warning("payment_provider is 'stripe' but STRIPE_SECRET_KEY is not set")
        return self


settings = Settings()
