"""
Base repository implementation shared by the SQLModel repositories.

Reads always refresh rows already held by the session so version numbers
and stock figures are never stale. Updates that carry a version
precondition are issued as a single UPDATE ... WHERE version = :expected.
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel

from ....domain.production.events import StatusChanged
from ....domain.shared.base import AggregateRoot
from ....domain.shared.exceptions import DomainError, ErrorType, LedgerConflictError
from ..models import StatusHistoryRow

RowType = TypeVar("RowType", bound=SQLModel)


class RepositoryError(DomainError):
    """Base exception for repository layer errors."""

    code = "REPOSITORY_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorType.PERSISTENCE)


class EntityAlreadyExistsError(RepositoryError):
    """Raised when attempting to create an entity that already exists."""

    code = "ENTITY_EXISTS"


class DatabaseError(RepositoryError):
    """Raised when a database operation fails."""

    code = "DATABASE_ERROR"


class BaseRepository(Generic[RowType]):
    """Session holder with the row-level helpers every repository needs."""

    row_class: type[RowType]

    def __init__(self, session: Session):
        self.session = session

    def _get_row(self, row_id: UUID) -> RowType | None:
        try:
            return self.session.get(self.row_class, row_id, populate_existing=True)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during get: {str(e)}") from e

    def _all(self, statement) -> list[Any]:
        try:
            return list(
                self.session.exec(statement.execution_options(populate_existing=True)).all()
            )
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during query: {str(e)}") from e

    def _insert(self, *rows: SQLModel) -> None:
        try:
            self.session.add_all(rows)
            self.session.flush()
        except IntegrityError as e:
            raise EntityAlreadyExistsError(f"Entity already exists: {str(e)}") from e
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during create: {str(e)}") from e

    def _versioned_update(
        self,
        where,
        expected_version: int,
        values: dict[str, Any],
        entity_type: str,
        entity_key: str,
    ) -> int:
        """
        Apply values only if the stored version still matches.

        Returns:
            The new version.

        Raises:
            LedgerConflictError: If no row matched.
            DatabaseError: If the statement fails.
        """
        statement = (
            update(self.row_class)
            .where(where, self.row_class.version == expected_version)
            .values(**values, version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.execute(statement)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during update: {str(e)}") from e
        if result.rowcount == 0:
            raise LedgerConflictError(entity_type, entity_key, expected_version)
        return expected_version + 1

    def _record_status_events(self, aggregate: AggregateRoot) -> None:
        """Drain status events of the aggregate into the history table."""
        for event in aggregate.get_domain_events():
            if isinstance(event, StatusChanged):
                self.session.add(
                    StatusHistoryRow(
                        entity_type=event.entity_type,
                        entity_id=event.entity_id,
                        from_status=event.from_status,
                        to_status=event.to_status,
                        changed_at=event.occurred_at,
                        reason=event.reason,
                    )
                )
        aggregate.clear_domain_events()
