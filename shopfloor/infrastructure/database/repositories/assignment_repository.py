"""Assignment repository."""

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select

from ....domain.production.entities import Assignment
from ....domain.production.repositories import AssignmentRepository
from ....domain.production.value_objects import AssignmentStatus, MovementSubtype
from ..mappers import assignment_to_domain, assignment_to_row, assignment_values
from ..models import AssignmentRow, StockMovementRow
from .base import BaseRepository, DatabaseError

OPEN_STATUSES = [
    AssignmentStatus.QUEUED,
    AssignmentStatus.IN_PROGRESS,
    AssignmentStatus.PAUSED,
]


class SqlAssignmentRepository(BaseRepository[AssignmentRow], AssignmentRepository):
    row_class = AssignmentRow

    def get(self, assignment_id: UUID) -> Assignment | None:
        row = self._get_row(assignment_id)
        return assignment_to_domain(row) if row else None

    def add(self, assignment: Assignment) -> None:
        self._insert(assignment_to_row(assignment))
        self._record_status_events(assignment)

    def save(self, assignment: Assignment) -> None:
        assignment.version = self._versioned_update(
            AssignmentRow.id == assignment.id,
            assignment.version,
            assignment_values(assignment),
            "assignment",
            str(assignment.id),
        )
        self._record_status_events(assignment)

    def list_by_plan(self, plan_id: UUID) -> list[Assignment]:
        rows = self._all(
            select(AssignmentRow)
            .where(AssignmentRow.plan_id == plan_id)
            .order_by(
                col(AssignmentRow.estimated_start_time),
                col(AssignmentRow.sequence_number),
            )
        )
        return [assignment_to_domain(row) for row in rows]

    def list_open_by_worker(self, worker_id: UUID) -> list[Assignment]:
        rows = self._all(
            select(AssignmentRow)
            .where(
                AssignmentRow.worker_id == worker_id,
                col(AssignmentRow.status).in_(OPEN_STATUSES),
            )
            .order_by(col(AssignmentRow.sequence_number))
        )
        return [assignment_to_domain(row) for row in rows]

    def list_open_by_substation(self, substation_id: UUID) -> list[Assignment]:
        rows = self._all(
            select(AssignmentRow)
            .where(
                AssignmentRow.substation_id == substation_id,
                col(AssignmentRow.status).in_(OPEN_STATUSES),
            )
            .order_by(
                col(AssignmentRow.estimated_start_time),
                col(AssignmentRow.sequence_number),
            )
        )
        return [assignment_to_domain(row) for row in rows]

    def max_sequence_for_worker(self, plan_id: UUID, worker_id: UUID) -> int:
        try:
            value = self.session.exec(
                select(func.max(AssignmentRow.sequence_number)).where(
                    AssignmentRow.plan_id == plan_id,
                    AssignmentRow.worker_id == worker_id,
                )
            ).first()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during query: {str(e)}") from e
        return value or 0

    def list_completed_with_reservations(self) -> list[Assignment]:
        reserved = (
            select(StockMovementRow.assignment_id)
            .where(StockMovementRow.subtype == MovementSubtype.WIP_RESERVATION)
            .distinct()
        )
        rows = self._all(
            select(AssignmentRow)
            .where(
                AssignmentRow.status == AssignmentStatus.COMPLETED,
                col(AssignmentRow.id).in_(reserved),
            )
            .order_by(col(AssignmentRow.completed_at), col(AssignmentRow.id))
        )
        return [assignment_to_domain(row) for row in rows]
