# backend/passdesk/repositories/reservation_repository.py
"""Reservation Repository: per-student reservations and their items."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.reservation import Reservation, ReservationItem
from .base_repository import BaseRepository


class ReservationRepository(BaseRepository[Reservation]):
    def __init__(self, db: Session):
        super().__init__(db, Reservation)

    def get_for_student(self, student_id: str) -> Optional[Reservation]:
        try:
            return (
                self._build_query()
                .options(selectinload(Reservation.items))
                .filter(Reservation.student_id == student_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading reservation for {student_id}: {str(e)}")
            raise RepositoryException(f"Failed to load reservation: {str(e)}")

    def get_or_create(self, student_id: str) -> Reservation:
        reservation = self.get_for_student(student_id)
        if reservation is None:
            reservation = self.create(student_id=student_id)
        return reservation

    def get_expired(self, now: datetime) -> List[Reservation]:
        """Reservations whose shared timer has run out."""
        return self._execute_query(
            self._build_query()
            .options(selectinload(Reservation.items))
            .filter(Reservation.expires_at.isnot(None), Reservation.expires_at <= now)
        )

    def add_item(self, reservation: Reservation, **fields) -> ReservationItem:
        try:
            position = max((i.position for i in reservation.items), default=-1) + 1
            item = ReservationItem(reservation_id=reservation.id, position=position, **fields)
            reservation.items.append(item)
            self.db.flush()
            return item
        except SQLAlchemyError as e:
            self.logger.error(f"Error adding reservation item: {str(e)}")
            raise RepositoryException(f"Failed to add reservation item: {str(e)}") from e

    def remove_item(self, reservation: Reservation, item_id: str) -> bool:
        item = next((i for i in reservation.items if i.id == item_id), None)
        if item is None:
            return False
        reservation.items.remove(item)
        self.db.flush()
        return True

    def clear_items(self, reservation: Reservation) -> int:
        removed = len(reservation.items)
        reservation.items.clear()
        reservation.expires_at = None
        self.db.flush()
        return removed
