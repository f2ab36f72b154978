# backend/passdesk/repositories/batch_repository.py
"""
Batch Repository

Data access for batches, including the guarded seat counter updates used
by checkout, switching, cancellation and expiry.
"""

import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BatchStatus
from ..core.exceptions import RepositoryException
from ..models.batch import Batch
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

OPEN_STATUSES = (BatchStatus.SCHEDULED.value, BatchStatus.ACTIVE.value)


class BatchRepository(BaseRepository[Batch]):
    def __init__(self, db: Session):
        super().__init__(db, Batch)

    def get_teacher_batches(
        self,
        business_id: str,
        teacher_key: str,
        exclude_batch_id: Optional[str] = None,
    ) -> List[Batch]:
        """Scheduled/active batches taught by the same teacher at one business."""
        query = self._build_query().filter(
            Batch.business_id == business_id,
            Batch.teacher_key == teacher_key,
            Batch.status.in_(OPEN_STATUSES),
        )
        if exclude_batch_id:
            query = query.filter(Batch.id != exclude_batch_id)
        return self._execute_query(query.order_by(Batch.start_time))

    def get_for_business(self, business_id: str, include_closed: bool = False) -> List[Batch]:
        query = self._build_query().filter(Batch.business_id == business_id)
        if not include_closed:
            query = query.filter(Batch.status.in_(OPEN_STATUSES))
        return self._execute_query(query.order_by(Batch.subject, Batch.start_time))

    def get_open_batches(self) -> List[Batch]:
        return self._execute_query(self._build_query().filter(Batch.status.in_(OPEN_STATUSES)))

    def increment_enrolled(self, batch_id: str) -> bool:
        """
        Take one seat. Returns False when the batch is full or not open.

        The capacity test and the increment are one UPDATE statement.
        """
        try:
            result = self.db.execute(
                update(Batch)
                .where(
                    Batch.id == batch_id,
                    Batch.enrolled_count < Batch.capacity,
                    Batch.status.in_(OPEN_STATUSES),
                )
                .values(enrolled_count=Batch.enrolled_count + 1)
                .execution_options(synchronize_session="fetch")
            )
            self._expire_counter(batch_id)
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error incrementing enrolled_count for {batch_id}: {str(e)}")
            raise RepositoryException(f"Failed to reserve seat: {str(e)}") from e

    def _expire_counter(self, batch_id: str) -> None:
        """Make the next read of enrolled_count hit the database."""
        batch = self.db.get(Batch, batch_id)
        if batch is not None:
            self.db.expire(batch, ["enrolled_count"])

    def decrement_enrolled(self, batch_id: str) -> bool:
        """Release one seat. Returns False when the counter is already zero."""
        try:
            result = self.db.execute(
                update(Batch)
                .where(Batch.id == batch_id, Batch.enrolled_count > 0)
                .values(enrolled_count=Batch.enrolled_count - 1)
                .execution_options(synchronize_session="fetch")
            )
            self._expire_counter(batch_id)
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error decrementing enrolled_count for {batch_id}: {str(e)}")
            raise RepositoryException(f"Failed to release seat: {str(e)}") from e
