# backend/passdesk/repositories/enrollment_repository.py
"""Enrollment Repository: student commitments used by the conflict checks."""

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.enums import EnrollmentStatus
from ..core.exceptions import RepositoryException
from ..models.enrollment import Enrollment
from .base_repository import BaseRepository


class EnrollmentRepository(BaseRepository[Enrollment]):
    def __init__(self, db: Session):
        super().__init__(db, Enrollment)

    def get_for_student(self, student_id: str, active_only: bool = False) -> List[Enrollment]:
        query = self._build_query().filter(Enrollment.student_id == student_id)
        if active_only:
            query = query.filter(Enrollment.status == EnrollmentStatus.ACTIVE.value)
        return self._execute_query(query.order_by(Enrollment.start_date))

    def get_active_class_enrollments(
        self, student_id: str, exclude_enrollment_id: Optional[str] = None
    ) -> List[Enrollment]:
        """Active batch enrollments with their batches loaded."""
        query = (
            self._build_query()
            .options(joinedload(Enrollment.batch))
            .filter(
                Enrollment.student_id == student_id,
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
                Enrollment.batch_id.isnot(None),
            )
        )
        if exclude_enrollment_id:
            query = query.filter(Enrollment.id != exclude_enrollment_id)
        return self._execute_query(query)

    def get_active_passes_at_business(self, student_id: str, business_id: str) -> List[Enrollment]:
        return self._execute_query(
            self._build_query().filter(
                Enrollment.student_id == student_id,
                Enrollment.business_id == business_id,
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
                Enrollment.pass_template_id.isnot(None),
            )
        )

    def get_expired_active(self, as_of: date) -> List[Enrollment]:
        """Active enrollments whose last day is before ``as_of``."""
        return self._execute_query(
            self._build_query().filter(
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
                Enrollment.end_date < as_of,
            )
        )

    def _conditional_update(self, enrollment_id: str, conditions: list, values: Dict[str, Any]) -> bool:
        try:
            result = self.db.execute(
                update(Enrollment)
                .where(Enrollment.id == enrollment_id, *conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating enrollment {enrollment_id}: {str(e)}")
            raise RepositoryException(f"Failed to update enrollment: {str(e)}") from e
        enrollment = self.db.get(Enrollment, enrollment_id)
        if enrollment is not None:
            self.db.expire(enrollment)
        return result.rowcount == 1

    def end_if_active(
        self, enrollment_id: str, status: EnrollmentStatus, batch_id: Optional[str], **fields
    ) -> bool:
        """
        Move an active enrollment to ``status`` in one UPDATE.

        Matches only while the row is still active and still on ``batch_id``;
        False means another request got there first and no seat should move.
        """
        return self._conditional_update(
            enrollment_id,
            [
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
                Enrollment.batch_id == batch_id if batch_id else Enrollment.batch_id.is_(None),
            ],
            {"status": status.value, **fields},
        )

    def move_if_unswitched(self, enrollment_id: str, from_batch_id: str, **fields) -> bool:
        """Apply a batch switch only to an active, never-switched row on ``from_batch_id``."""
        return self._conditional_update(
            enrollment_id,
            [
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
                Enrollment.batch_id == from_batch_id,
                Enrollment.switch_used.is_(False),
            ],
            {"switch_used": True, **fields},
        )
