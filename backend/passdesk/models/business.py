# backend/passdesk/models/business.py
"""
Business model.

A business (gym, coaching center, library) owns batches and pass
templates. Its operating days decide how long a pass lasts: passes are
measured in days the business is open, not calendar days.
"""

from typing import FrozenSet

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import WEEK_ORDER, BusinessVertical, SubscriptionTier, Weekday
from ..core.timezone_utils import DEFAULT_TIMEZONE
from ..database import Base

ALL_DAYS_CSV = ",".join(day.value for day in WEEK_ORDER)


class Business(Base):
    __tablename__ = "businesses"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    vertical = Column(String(20), nullable=False, default=BusinessVertical.COACHING.value)
    subscription_tier = Column(String(20), nullable=False, default=SubscriptionTier.BASIC.value)
    timezone = Column(String(64), nullable=False, default=DEFAULT_TIMEZONE)

    # Comma separated weekday codes, e.g. "mon,tue,wed,thu,fri,sat"
    operating_days = Column(String(40), nullable=False, default=ALL_DAYS_CSV)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    batches = relationship("Batch", back_populates="business", cascade="all, delete-orphan")
    pass_templates = relationship(
        "PassTemplate", back_populates="business", cascade="all, delete-orphan"
    )

    @property
    def operating_weekdays(self) -> FrozenSet[Weekday]:
        days = frozenset(
            Weekday(code.strip()) for code in (self.operating_days or "").split(",") if code.strip()
        )
        # A business with no configured days is treated as open every day
        return days or frozenset(WEEK_ORDER)

    def __repr__(self) -> str:
        return f"<Business {self.id} {self.name!r} ({self.vertical})>"
