# backend/passdesk/repositories/base_repository.py
"""
Base Repository Pattern for PassDesk

Generic CRUD over one mapped model. Every SQLAlchemy failure is logged and
re-raised as RepositoryException.

Repositories flush but never commit or roll back; the service layer owns
the transaction boundary.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[T]):
    """Minimal data access contract shared by all repositories."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        ...

    @abstractmethod
    def create(self, **kwargs) -> T:
        ...

    @abstractmethod
    def update(self, id: str, **kwargs) -> Optional[T]:
        ...

    @abstractmethod
    def delete(self, id: str) -> bool:
        ...


class BaseRepository(IRepository[T]):
    """
    Session-bound repository for a single model class.

    Subclasses add domain queries on top of ``_build_query`` and
    ``_execute_query``.
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        name = self.model.__name__
        try:
            yield
        except IntegrityError as exc:
            self.logger.error("Integrity error while trying to %s %s: %s", action, name, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as exc:
            self.logger.error("Could not %s %s: %s", action, name, exc)
            raise RepositoryException(f"Failed to {action} {name}: {exc}") from exc

    def get_by_id(self, id: str) -> Optional[T]:
        with self._guard("load"):
            return self.db.get(self.model, id)

    def create(self, **kwargs) -> T:
        """Add and flush a new row so ids and server defaults are populated."""
        with self._guard("create"):
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity

    def update(self, id: str, **kwargs) -> Optional[T]:
        """Set the given attributes; unknown names are ignored. None if missing."""
        with self._guard("update"):
            entity = self.db.get(self.model, id)
            if entity is None:
                return None
            for field, value in kwargs.items():
                if hasattr(entity, field):
                    setattr(entity, field, value)
            self.db.flush()
            return entity

    def delete(self, id: str) -> bool:
        with self._guard("delete"):
            entity = self.db.get(self.model, id)
            if entity is None:
                return False
            self.db.delete(entity)
            self.db.flush()
            return True

    def find_one_by(self, **criteria) -> Optional[T]:
        with self._guard("find"):
            return self.db.query(self.model).filter_by(**criteria).first()

    def _build_query(self) -> Query:
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[Any]:
        with self._guard("query"):
            return query.all()
