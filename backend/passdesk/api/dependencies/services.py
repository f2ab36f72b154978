# backend/passdesk/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets a BookingEngine bound to its own session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...services.booking_engine import BookingEngine
from .database import get_db


def get_booking_engine(db: Session = Depends(get_db)) -> BookingEngine:
    """Get a BookingEngine for the request's session."""
    return BookingEngine(db, config=settings)
