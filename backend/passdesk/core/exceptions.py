# backend/passdesk/core/exceptions.py
"""
Domain-specific exceptions for the PassDesk engine.

Every engine rejection is a DomainException subclass so the API layer can
turn it into an HTTP response with a stable ``code``. Conflict-bearing
exceptions keep the ConflictResult they were raised for on ``.result``.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

from fastapi import HTTPException, status

if TYPE_CHECKING:
    from ..domain.conflicts import AlreadyReserved, CapacityFull, ScheduleConflict

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised for malformed time, pattern, capacity or date input."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails (persistence, locking)."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class LockUnavailableException(ServiceException):
    """Raised when an offering or teacher lock cannot be acquired in time."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, key: str, timeout: float):
        super().__init__(
            message="This offering is busy. Please retry.",
            code="LOCK_UNAVAILABLE",
            details={"key": key, "timeout_seconds": timeout},
        )


# Engine-specific exceptions


class ScheduleConflictException(ConflictException):
    """Raised when a candidate overlaps an enrollment or reservation item."""

    def __init__(self, result: "ScheduleConflict", code: str = "SCHEDULE_CONFLICT"):
        self.result = result
        super().__init__(message=result.message, code=code, details=result.to_dict())

    @property
    def overlap_days(self):
        return self.result.overlap_days

    @property
    def overlap_minutes(self) -> int:
        return self.result.overlap_minutes


class TeacherConflictException(ScheduleConflictException):
    """Raised when a batch would double-book its teacher."""

    def __init__(self, result: "ScheduleConflict"):
        super().__init__(result, code="TEACHER_CONFLICT")


class AlreadyReservedException(ConflictException):
    """Raised when the student already holds or has reserved the offering."""

    def __init__(self, result: "AlreadyReserved"):
        self.result = result
        super().__init__(
            message=result.message,
            code="ALREADY_RESERVED",
            details=result.to_dict(),
        )


class CapacityException(ConflictException):
    """Raised when an offering has no free seats."""

    def __init__(self, result: "CapacityFull"):
        self.result = result
        super().__init__(
            message=result.message,
            code="CAPACITY_FULL",
            details=result.to_dict(),
        )


class ReservationExpiredException(BusinessRuleException):
    """Raised on checkout or mutation after the reservation timer elapsed."""

    status_code = status.HTTP_410_GONE

    def __init__(self, student_id: str, expired_at: Optional[str] = None):
        super().__init__(
            message="Your reservation has expired. Please add your selections again.",
            code="RESERVATION_EXPIRED",
            details={"student_id": student_id, "expired_at": expired_at},
        )


class SwitchNotAllowedException(BusinessRuleException):
    """Raised when a batch switch is already used or too close to start."""

    def __init__(self, message: str, reason: str, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__(
            message=message,
            code="SWITCH_NOT_ALLOWED",
            details={"reason": reason, **(details or {})},
        )


class LockedException(BusinessRuleException):
    """Raised when a monthly pass is cancelled inside its lock window."""

    status_code = status.HTTP_423_LOCKED

    def __init__(self, days_remaining: int, lock_days: int):
        self.days_remaining = days_remaining
        super().__init__(
            message=(
                f"Monthly passes can be cancelled after {lock_days} days. "
                f"{days_remaining} days remaining."
            ),
            code="CANCELLATION_LOCKED",
            details={"days_remaining": days_remaining, "lock_days": lock_days},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as connection issues,
    query failures, or constraint violations.
    """
