"""Assignment aggregate: one plan node booked on a worker and a substation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field, model_validator
from typing_extensions import Self

from ...shared.base import AggregateRoot
from ...shared.exceptions import (
    AssignmentStatusError,
    ScrapRecordError,
    ValidationError,
)
from ..events import StatusChanged
from ..value_objects.enums import AssignmentStatus, ScrapType


class Assignment(AggregateRoot):
    """
    A queued or executing piece of work.

    sequence_number is the position in the worker's queue for the plan. Scrap counters
    are reporting counters only; they reach the material ledger through
    the consumption figure at completion.
    """

    plan_id: UUID
    node_id: UUID
    worker_id: UUID
    substation_id: UUID
    operation_id: UUID
    sequence_number: int = Field(ge=1)
    estimated_start_time: datetime
    estimated_end_time: datetime
    effective_time_minutes: int = Field(default=0, ge=0)
    status: AssignmentStatus = AssignmentStatus.QUEUED
    started_at: datetime | None = None
    completed_at: datetime | None = None
    actual_quantity: Decimal | None = None
    defect_quantity: Decimal = Decimal("0")
    input_scrap_count: dict[str, Decimal] = Field(default_factory=dict)
    production_scrap_count: dict[str, Decimal] = Field(default_factory=dict)
    pre_production_reserved: dict[str, Decimal] = Field(default_factory=dict)
    # What the ledger could actually hold; below the planned amount on shortage
    actual_reserved: dict[str, Decimal] = Field(default_factory=dict)
    planned_output: Decimal = Decimal("0")
    notes: str | None = None
    version: int = 0

    @model_validator(mode="after")
    def _check_estimates(self) -> Self:
        if self.estimated_end_time < self.estimated_start_time:
            raise ValueError("estimated_end_time must not precede estimated_start_time")
        return self

    @property
    def is_completed(self) -> bool:
        return self.status is AssignmentStatus.COMPLETED

    def _transition(
        self, target: AssignmentStatus, at: datetime, reason: str | None = None
    ) -> None:
        if not self.status.can_transition_to(target):
            raise AssignmentStatusError(self.id, self.status.value, target.value)
        old_status = self.status
        self.status = target
        self.add_domain_event(
            StatusChanged(
                aggregate_id=self.id,
                entity_type="assignment",
                entity_id=self.id,
                from_status=old_status.value,
                to_status=target.value,
                reason=reason,
                occurred_at=at,
            )
        )

    def start(self, at: datetime) -> None:
        self._transition(AssignmentStatus.IN_PROGRESS, at, "started")
        self.started_at = at

    def pause(self, at: datetime, reason: str | None = None) -> None:
        self._transition(AssignmentStatus.PAUSED, at, reason or "paused by worker")

    def resume(self, at: datetime) -> None:
        self._transition(AssignmentStatus.IN_PROGRESS, at, "resumed by worker")

    def complete(
        self,
        at: datetime,
        actual_quantity: Decimal,
        defect_quantity: Decimal = Decimal("0"),
        notes: str | None = None,
    ) -> None:
        if actual_quantity < 0 or defect_quantity < 0:
            raise ValidationError(
                "actual_quantity",
                str(actual_quantity),
                "quantities must not be negative",
            )
        self._transition(AssignmentStatus.COMPLETED, at, "completion reported")
        self.completed_at = at
        self.actual_quantity = actual_quantity
        self.defect_quantity = defect_quantity
        if notes:
            self.notes = notes

    def _scrap_counter(self, scrap_type: ScrapType) -> dict[str, Decimal]:
        if scrap_type is ScrapType.INPUT:
            return self.input_scrap_count
        return self.production_scrap_count

    def _ensure_open(self, target: str) -> None:
        if self.is_completed:
            raise AssignmentStatusError(self.id, self.status.value, target)

    def record_scrap(
        self, material_code: str, delta: Decimal, scrap_type: ScrapType
    ) -> Decimal:
        """Increase a scrap counter. Returns the new count."""
        self._ensure_open("scrap")
        if delta <= 0:
            raise ValidationError("delta", str(delta), "scrap delta must be positive")
        counter = dict(self._scrap_counter(scrap_type))
        counter[material_code] = counter.get(material_code, Decimal("0")) + delta
        self._store_counter(scrap_type, counter)
        return counter[material_code]

    def undo_scrap(
        self, material_code: str, delta: Decimal, scrap_type: ScrapType
    ) -> Decimal:
        """
        Decrease a scrap counter, flooring at zero.

        A counter that reaches zero is removed from the mapping.
        """
        self._ensure_open("scrap")
        if delta <= 0:
            raise ValidationError("delta", str(delta), "scrap delta must be positive")
        counter = dict(self._scrap_counter(scrap_type))
        if material_code not in counter:
            raise ScrapRecordError(self.id, material_code, scrap_type.value)
        remaining = max(counter[material_code] - delta, Decimal("0"))
        if remaining == 0:
            del counter[material_code]
        else:
            counter[material_code] = remaining
        self._store_counter(scrap_type, counter)
        return remaining

    def _store_counter(self, scrap_type: ScrapType, counter: dict[str, Decimal]) -> None:
        # Reassign so validate_assignment sees the change
        if scrap_type is ScrapType.INPUT:
            self.input_scrap_count = counter
        else:
            self.production_scrap_count = counter
