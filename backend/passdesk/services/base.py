# backend/passdesk/services/base.py
"""
Base Service Pattern for PassDesk

Every engine service derives from BaseService, which supplies:
- the session and the unit-of-work boundary (``transaction()``)
- a logger named after the concrete service
- ``measure_operation`` timing, fed to Prometheus and to in-process stats
- the clock, injectable so expiry and lock windows can be tested
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, ServiceException
from ..core.timezone_utils import Clock, utc_now
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


@dataclass
class OperationStats:
    calls: int = 0
    failures: int = 0
    total_seconds: float = 0.0
    slowest_seconds: float = 0.0

    def record(self, elapsed: float, ok: bool) -> None:
        self.calls += 1
        self.total_seconds += elapsed
        self.slowest_seconds = max(self.slowest_seconds, elapsed)
        if not ok:
            self.failures += 1

    def summary(self) -> Dict[str, Any]:
        return {
            "count": self.calls,
            "success_count": self.calls - self.failures,
            "failure_count": self.failures,
            "avg_time": self.total_seconds / self.calls if self.calls else 0.0,
            "max_time": self.slowest_seconds,
        }


class BaseService:
    """
    Base class for engine services.

    Services own transactions; repositories below them only flush.
    """

    # Shared across instances, keyed by service class then operation
    _stats: Dict[str, Dict[str, OperationStats]] = {}

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        """
        Args:
            db: Session for this unit of work
            clock: Callable returning the current aware UTC datetime
        """
        self.db = db
        self.clock: Clock = clock or utc_now
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self) -> datetime:
        return self.clock()

    @contextmanager
    def transaction(self):
        """
        Commit on success, roll back on any error.

        Persistence failures (SQLAlchemy or repository errors) surface as
        ServiceException; domain errors propagate unchanged.

            with self.transaction():
                self.repository.add_item(...)
        """
        try:
            yield self.db
            self.db.commit()
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Rolling back after persistence failure: {e}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {e}") from e
        except Exception as e:
            self.logger.debug(f"Rolling back: {type(e).__name__}: {e}")
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method and record the outcome.

            @BaseService.measure_operation("checkout")
            def checkout(self, student_id, contact):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                started = time.perf_counter()
                error_type = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    self._stats_for(operation_name).record(elapsed, error_type is None)
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(f"Slow operation: {operation_name} took {elapsed:.2f}s")
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if error_type is None else "error",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def _stats_for(self, operation: str) -> OperationStats:
        per_service = BaseService._stats.setdefault(self.__class__.__name__, {})
        return per_service.setdefault(operation, OperationStats())

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation call counts and timings for this service class."""
        per_service = BaseService._stats.get(self.__class__.__name__, {})
        return {name: stats.summary() for name, stats in per_service.items() if stats.calls}
