"""
Service layer for PassDesk.

Business logic lives here; routes and commands only translate inputs
and outputs.
"""

from .base import BaseService
from .batch_service import BatchService, BatchSpec
from .booking_engine import BookingEngine
from .checkout_service import CheckoutService
from .conflict_checker import ConflictChecker
from .enrollment_policy_service import EnrollmentPolicyService
from .reservation_service import AddResult, ReservationService

__all__ = [
    "AddResult",
    "BaseService",
    "BatchService",
    "BatchSpec",
    "BookingEngine",
    "CheckoutService",
    "ConflictChecker",
    "EnrollmentPolicyService",
    "ReservationService",
]
