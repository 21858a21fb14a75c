"""Station and substation entities."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ...shared.base import AggregateRoot, Entity
from ...shared.exceptions import BusinessRuleViolation
from ..events import StatusChanged
from ..value_objects.enums import SubstationStatus


class Substation(AggregateRoot):
    """
    Physical sub-resource of a station, occupied by one worker at a time.

    current_assignment_id and assigned_worker_id are weak references: the
    assignment owns the relationship, the substation only points back.
    """

    station_id: UUID
    code: str = Field(min_length=1, max_length=30)
    priority: int = Field(default=1, ge=1)
    status: SubstationStatus = SubstationStatus.AVAILABLE
    current_assignment_id: UUID | None = None
    assigned_worker_id: UUID | None = None
    current_expected_end: datetime | None = None
    version: int = 0

    def _change_status(
        self, new_status: SubstationStatus, at: datetime, reason: str
    ) -> None:
        old_status = self.status
        self.status = new_status
        self.add_domain_event(
            StatusChanged(
                aggregate_id=self.id,
                entity_type="substation",
                entity_id=self.id,
                from_status=old_status.value,
                to_status=new_status.value,
                reason=reason,
                occurred_at=at,
            )
        )

    def reserve(
        self, assignment_id: UUID, worker_id: UUID, expected_end: datetime, at: datetime
    ) -> None:
        """Book an available substation for a queued assignment."""
        if self.status is not SubstationStatus.AVAILABLE:
            raise BusinessRuleViolation(
                "substation_available",
                f"Substation {self.code} is {self.status.value}",
                {"substation_id": str(self.id)},
            )
        self.current_assignment_id = assignment_id
        self.assigned_worker_id = worker_id
        self.current_expected_end = expected_end
        self._change_status(
            SubstationStatus.RESERVED, at, f"assignment {assignment_id}"
        )

    def occupy(self, assignment_id: UUID, worker_id: UUID, at: datetime) -> None:
        """Mark the substation in use by the assignment that started on it."""
        if self.status is SubstationStatus.MAINTENANCE:
            raise BusinessRuleViolation(
                "substation_not_in_maintenance",
                f"Substation {self.code} is under maintenance",
                {"substation_id": str(self.id)},
            )
        self.current_assignment_id = assignment_id
        self.assigned_worker_id = worker_id
        if self.status is not SubstationStatus.IN_USE:
            self._change_status(
                SubstationStatus.IN_USE, at, f"assignment {assignment_id}"
            )

    def release(self, at: datetime) -> None:
        """
        Free the substation after its current assignment completed.

        A substation taken into maintenance meanwhile stays in maintenance.
        """
        self.current_assignment_id = None
        self.assigned_worker_id = None
        self.current_expected_end = None
        if self.status in (SubstationStatus.RESERVED, SubstationStatus.IN_USE):
            self._change_status(SubstationStatus.AVAILABLE, at, "assignment completed")

    def start_maintenance(self, at: datetime, reason: str | None = None) -> None:
        """Take the substation out of service. Running work keeps its reference."""
        if self.status is not SubstationStatus.MAINTENANCE:
            self._change_status(SubstationStatus.MAINTENANCE, at, reason or "maintenance")

    def end_maintenance(self, at: datetime) -> None:
        if self.status is not SubstationStatus.MAINTENANCE:
            raise BusinessRuleViolation(
                "substation_in_maintenance",
                f"Substation {self.code} is not under maintenance",
                {"substation_id": str(self.id)},
            )
        target = (
            SubstationStatus.IN_USE
            if self.current_assignment_id is not None
            else SubstationStatus.AVAILABLE
        )
        self._change_status(target, at, "maintenance finished")


class Station(Entity):
    """A work center grouping one or more substations."""

    name: str = Field(min_length=1, max_length=100)
    # Empty means the station supports any operation
    operation_ids: set[UUID] = Field(default_factory=set)
    # Sub-skills added to a node's own requirements when worked here
    required_skills: set[str] = Field(default_factory=set)
    substations: list[Substation] = Field(default_factory=list)

    def supports(self, operation_id: UUID) -> bool:
        return not self.operation_ids or operation_id in self.operation_ids

    def substations_by_priority(self) -> list[Substation]:
        return sorted(self.substations, key=lambda s: (s.priority, s.code, s.id))
