"""
Unit of Work implementation for managing transactions across repositories.

One unit of work is one database transaction. Leaving the context commits
on success and rolls back when the block raised. Savepoints give the
ledger and the scheduler an all-or-nothing scope inside the transaction.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ...domain.production.repositories import UnitOfWork
from .repositories import (
    DatabaseError,
    SqlAssignmentRepository,
    SqlCounterRepository,
    SqlMaterialRepository,
    SqlMovementRepository,
    SqlOperationRepository,
    SqlPlanRepository,
    SqlScheduleRepository,
    SqlStationRepository,
    SqlStatusHistoryRepository,
    SqlWorkerRepository,
)


class SqlModelUnitOfWork(UnitOfWork):
    """
    SQLModel-based implementation of Unit of Work pattern.

    Manages database transactions using SQLModel/SQLAlchemy sessions and
    provides access to all repositories within a single transactional
    boundary.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._session: Session | None = None

    def __enter__(self) -> "SqlModelUnitOfWork":
        self._session = self._session_factory()
        self._init_repositories(self._session)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type is not None:
                self.rollback()
            else:
                try:
                    self.commit()
                except Exception:
                    self.rollback()
                    raise
        finally:
            if self._session:
                self._session.close()
                self._session = None

    def commit(self) -> None:
        """
        Commit the current transaction.

        Raises:
            DatabaseError: If commit fails
        """
        session = self.session
        try:
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Failed to commit transaction: {str(e)}") from e

    def rollback(self) -> None:
        """
        Rollback the current transaction.

        Raises:
            DatabaseError: If rollback fails
        """
        try:
            self.session.rollback()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to rollback transaction: {str(e)}") from e

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Nested transaction, released on success and rolled back alone on error."""
        try:
            nested = self.session.begin_nested()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to open savepoint: {str(e)}") from e
        try:
            yield
        except BaseException:
            if nested.is_active:
                nested.rollback()
            raise
        else:
            if nested.is_active:
                nested.commit()

    def flush(self) -> None:
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to flush session: {str(e)}") from e

    def _init_repositories(self, session: Session) -> None:
        self.plans = SqlPlanRepository(session)
        self.operations = SqlOperationRepository(session)
        self.workers = SqlWorkerRepository(session)
        self.stations = SqlStationRepository(session)
        self.assignments = SqlAssignmentRepository(session)
        self.materials = SqlMaterialRepository(session)
        self.movements = SqlMovementRepository(session)
        self.counters = SqlCounterRepository(session)
        self.schedules = SqlScheduleRepository(session)
        self.history = SqlStatusHistoryRepository(session)

    @property
    def session(self) -> Session:
        """
        Get the current database session.

        Raises:
            DatabaseError: If no active session
        """
        if not self._session:
            raise DatabaseError("No active database session")
        return self._session


class UnitOfWorkManager:
    """Factory for unit of work instances bound to one session factory."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def create_unit_of_work(self) -> SqlModelUnitOfWork:
        return SqlModelUnitOfWork(self._session_factory)

    __call__ = create_unit_of_work

    @contextmanager
    def transaction(self) -> Iterator[SqlModelUnitOfWork]:
        """Context manager for a transactional unit of work."""
        with self.create_unit_of_work() as uow:
            yield uow
