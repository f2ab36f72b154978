"""
Repository layer for PassDesk.

Data access is separated from business logic; services receive
repositories from RepositoryFactory and own commit/rollback.
"""

from .base_repository import BaseRepository, IRepository
from .batch_repository import BatchRepository
from .enrollment_repository import EnrollmentRepository
from .factory import RepositoryFactory
from .reservation_repository import ReservationRepository
from .transaction_repository import TransactionRepository

__all__ = [
    "IRepository",
    "BaseRepository",
    "BatchRepository",
    "EnrollmentRepository",
    "RepositoryFactory",
    "ReservationRepository",
    "TransactionRepository",
]
