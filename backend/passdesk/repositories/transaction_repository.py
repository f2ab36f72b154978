# backend/passdesk/repositories/transaction_repository.py
"""Transaction Repository. Transactions are append-only."""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.transaction import Transaction
from .base_repository import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    def __init__(self, db: Session):
        super().__init__(db, Transaction)

    def get_by_order_id(self, order_id: str) -> Optional[Transaction]:
        return self.find_one_by(order_id=order_id)

    def get_for_student(self, student_id: str) -> List[Transaction]:
        return self._execute_query(
            self._build_query()
            .filter(Transaction.student_id == student_id)
            .order_by(Transaction.created_at.desc())
        )

    def update(self, id: str, **kwargs) -> Optional[Transaction]:
        raise RepositoryException("Transactions are append-only")

    def delete(self, id: str) -> bool:
        raise RepositoryException("Transactions are append-only")
