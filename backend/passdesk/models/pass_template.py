# backend/passdesk/models/pass_template.py
"""Pass templates: non-class access passes (gym sessions, library seats)."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import PassTier
from ..database import Base


class PassTemplate(Base):
    __tablename__ = "pass_templates"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    business_id = Column(String(26), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)

    # Free-form segment name shown to students, e.g. "Morning (6-10 AM)"
    time_segment = Column(String(80), nullable=True)
    tier = Column(String(20), nullable=False, default=PassTier.MONTHLY.value)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    business = relationship("Business", back_populates="pass_templates")

    @property
    def display_label(self) -> str:
        segment = f" ({self.time_segment})" if self.time_segment else ""
        return f"{self.name}{segment}"
