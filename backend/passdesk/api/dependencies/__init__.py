"""
Centralized dependency injection for FastAPI routes.
"""

from .database import get_db
from .services import get_booking_engine

__all__ = ["get_db", "get_booking_engine"]
