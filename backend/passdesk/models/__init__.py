"""SQLAlchemy models. Importing this package registers every table on Base."""

from .batch import Batch
from .business import Business
from .enrollment import Enrollment
from .pass_template import PassTemplate
from .reservation import Reservation, ReservationItem
from .transaction import Transaction

__all__ = [
    "Batch",
    "Business",
    "Enrollment",
    "PassTemplate",
    "Reservation",
    "ReservationItem",
    "Transaction",
]
