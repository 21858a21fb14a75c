"""Transactional sequence counters."""

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col, select

from ....domain.production.repositories import CounterRepository
from ..models import SequenceCounterRow
from .base import BaseRepository, DatabaseError


class SqlCounterRepository(BaseRepository[SequenceCounterRow], CounterRepository):
    """
    Named counters updated with a single UPDATE ... SET value = value + 1.

    The increment takes the row's write lock inside the caller's
    transaction, so two launches never hand out the same number.
    """

    row_class = SequenceCounterRow

    def increment_and_fetch(self, key: str) -> int:
        if self._add(key, 1):
            return self.current(key)
        if self._create(key, 1):
            return 1
        # Created concurrently
        self._add(key, 1)
        return self.current(key)

    def current(self, key: str) -> int:
        try:
            value = self.session.exec(
                select(SequenceCounterRow.value).where(SequenceCounterRow.key == key)
            ).first()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during query: {str(e)}") from e
        return value or 0

    def raise_to(self, key: str, value: int) -> int:
        current = self.current(key)
        if current >= value:
            return current
        try:
            result = self.session.execute(
                update(SequenceCounterRow)
                .where(
                    col(SequenceCounterRow.key) == key,
                    col(SequenceCounterRow.value) < value,
                )
                .values(value=value)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during update: {str(e)}") from e
        if result.rowcount == 0 and current == 0:
            self._create(key, value)
        return self.current(key)

    def _add(self, key: str, amount: int) -> bool:
        try:
            result = self.session.execute(
                update(SequenceCounterRow)
                .where(col(SequenceCounterRow.key) == key)
                .values(value=SequenceCounterRow.value + amount)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during update: {str(e)}") from e
        return result.rowcount > 0

    def _create(self, key: str, value: int) -> bool:
        try:
            with self.session.begin_nested():
                self.session.add(SequenceCounterRow(key=key, value=value))
                self.session.flush()
        except IntegrityError:
            return False
        return True
