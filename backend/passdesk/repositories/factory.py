# backend/passdesk/repositories/factory.py
"""
Repository Factory for PassDesk

Centralized creation of repository instances so services can be handed
test doubles without knowing concrete classes.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .batch_repository import BatchRepository
    from .enrollment_repository import EnrollmentRepository
    from .reservation_repository import ReservationRepository
    from .transaction_repository import TransactionRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_business_repository(db: Session) -> BaseRepository:
        from ..models.business import Business

        return BaseRepository(db, Business)

    @staticmethod
    def create_pass_template_repository(db: Session) -> BaseRepository:
        from ..models.pass_template import PassTemplate

        return BaseRepository(db, PassTemplate)

    @staticmethod
    def create_batch_repository(db: Session) -> "BatchRepository":
        from .batch_repository import BatchRepository

        return BatchRepository(db)

    @staticmethod
    def create_enrollment_repository(db: Session) -> "EnrollmentRepository":
        from .enrollment_repository import EnrollmentRepository

        return EnrollmentRepository(db)

    @staticmethod
    def create_reservation_repository(db: Session) -> "ReservationRepository":
        from .reservation_repository import ReservationRepository

        return ReservationRepository(db)

    @staticmethod
    def create_transaction_repository(db: Session) -> "TransactionRepository":
        from .transaction_repository import TransactionRepository

        return TransactionRepository(db)
