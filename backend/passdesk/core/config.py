# backend/passdesk/core/config.py
import logging
import os
from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .enums import PassTier, SubscriptionTier

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


def _default_tier_operating_days() -> Dict[str, int]:
    return {PassTier.DAILY.value: 1, PassTier.WEEKLY.value: 7, PassTier.MONTHLY.value: 30}


def _default_commission_rates() -> Dict[str, float]:
    return {
        SubscriptionTier.BASIC.value: 15.0,
        SubscriptionTier.PREMIUM.value: 8.0,
        SubscriptionTier.ENTERPRISE.value: 0.0,
    }


def _default_subscription_fees() -> Dict[str, float]:
    return {
        SubscriptionTier.BASIC.value: 0.0,
        SubscriptionTier.PREMIUM.value: 2000.0,
        SubscriptionTier.ENTERPRISE.value: 5000.0,
    }


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")
    database_url: str = Field(
        default="sqlite+pysqlite:///./passdesk.db",
        description="SQLAlchemy database URL",
    )
    log_level: str = "INFO"
    currency: str = "INR"

    # Reservation / booking windows (admin-controlled)
    reservation_window_minutes: int = Field(
        default=15, description="Lifetime of a student's reservation, shared by all items"
    )
    advance_booking_days: int = Field(
        default=60, description="How far ahead a start date may be chosen"
    )
    grace_period_days: int = Field(
        default=3, description="Days a lapsed pass stays renewable (not enforced by the engine)"
    )

    # Enrollment policy
    switch_notice_days: int = 7
    monthly_lock_days: int = 30
    class_pass_operating_days: int = 30
    tier_operating_days: Dict[str, int] = Field(default_factory=_default_tier_operating_days)

    # Business subscription figures, carried for the admin surface
    commission_rates: Dict[str, float] = Field(default_factory=_default_commission_rates)
    subscription_fees: Dict[str, float] = Field(default_factory=_default_subscription_fees)

    # Locking
    lock_timeout_seconds: float = Field(
        default=10.0, description="Max wait for an offering/teacher lock before giving up"
    )
    redis_url: Optional[str] = Field(
        default="redis://localhost:6379",
        description="Redis holding cross-process booking locks; empty disables it",
    )
    lock_namespace: str = "passdesk"
    lock_ttl_seconds: float = Field(
        default=30.0, description="Redis lock expiry, longer than any locked operation"
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        env_prefix="PASSDESK_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "reservation_window_minutes",
        "advance_booking_days",
        "switch_notice_days",
        "monthly_lock_days",
        "class_pass_operating_days",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive number of minutes/days")
        return value

    @field_validator("grace_period_days")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("grace period cannot be negative")
        return value

    @field_validator("tier_operating_days")
    @classmethod
    def _known_pass_tiers(cls, value: Dict[str, int]) -> Dict[str, int]:
        known = {tier.value for tier in PassTier}
        unknown = set(value) - known
        if unknown:
            raise ValueError(f"Unknown pass tiers: {sorted(unknown)}")
        missing = known - set(value)
        if missing:
            raise ValueError(f"Missing operating days for pass tiers: {sorted(missing)}")
        if any(days <= 0 for days in value.values()):
            raise ValueError("operating days per tier must be positive")
        return value

    @field_validator("commission_rates", "subscription_fees")
    @classmethod
    def _known_subscription_tiers(cls, value: Dict[str, float]) -> Dict[str, float]:
        known = {tier.value for tier in SubscriptionTier}
        unknown = set(value) - known
        if unknown:
            raise ValueError(f"Unknown subscription tiers: {sorted(unknown)}")
        return value

    def operating_days_for_tier(self, tier: str) -> int:
        """Operating days covered by a pass of the given tier."""
        return self.tier_operating_days[PassTier(tier).value]


settings = Settings()
