"""
Execution Data Transfer Objects.

Request and response shapes of the plan execution service: launch results
with their warnings and summary, completion reports, scrap counters and
reconciliation reports.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...domain.production.value_objects import AssignmentStatus, ScrapType


class AssignmentResponse(BaseModel):
    """DTO for one booked assignment."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    plan_id: UUID
    node_id: UUID
    worker_id: UUID
    substation_id: UUID
    sequence_number: int
    estimated_start_time: datetime
    estimated_end_time: datetime
    effective_time_minutes: int
    status: AssignmentStatus
    pre_production_reserved: dict[str, Decimal] = Field(default_factory=dict)
    actual_reserved: dict[str, Decimal] = Field(default_factory=dict)
    planned_output: Decimal = Decimal("0")
    queued: bool = Field(False, description="Waiting behind a busy substation")


class LaunchWarning(BaseModel):
    """A non-fatal launch problem. assignment_id is set when the node was booked anyway."""

    code: str
    message: str
    node_id: UUID | None = None
    assignment_id: UUID | None = None
    node_name: str | None = None
    material_code: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class LaunchSummary(BaseModel):
    total_nodes: int
    assigned_nodes: int
    unassigned_nodes: int
    workers_touched: int
    substations_touched: int
    wave_count: int
    parallel_paths: int = Field(..., description="Width of the widest wave")
    queued_count: int = 0
    estimated_start: datetime | None = None
    estimated_end: datetime | None = None
    estimated_duration_minutes: int = 0


class LaunchResult(BaseModel):
    """DTO returned by a launch. Partial success is reported through warnings."""

    plan_id: UUID
    assignments: list[AssignmentResponse] = Field(default_factory=list)
    warnings: list[LaunchWarning] = Field(default_factory=list)
    summary: LaunchSummary

    @property
    def unassigned_node_ids(self) -> list[UUID]:
        return [
            w.node_id
            for w in self.warnings
            if w.node_id is not None and w.assignment_id is None
        ]


class ResumeResult(BaseModel):
    plan_id: UUID
    resumed_at: datetime
    open_assignments: int
    worker_cursors: dict[UUID, datetime] = Field(default_factory=dict)
    sequence_positions: dict[UUID, int] = Field(default_factory=dict)


class CompletionReport(BaseModel):
    """DTO for a worker's completion report."""

    actual_quantity: Decimal = Field(..., ge=0, description="Good output produced")
    defect_quantity: Decimal = Field(Decimal("0"), ge=0)
    input_scrap: dict[str, Decimal] = Field(default_factory=dict)
    production_scrap: dict[str, Decimal] = Field(default_factory=dict)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("input_scrap", "production_scrap")
    @classmethod
    def validate_scrap(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Scrap counts must not be negative."""
        for code, count in v.items():
            if count < 0:
                raise ValueError(f"Scrap count for {code} must not be negative")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "actual_quantity": "8",
                "defect_quantity": "0",
                "input_scrap": {},
                "production_scrap": {},
                "notes": "Shift A",
            }
        }
    )


class CompletionResult(BaseModel):
    assignment_id: UUID
    completed_at: datetime
    consumed: dict[str, Decimal] = Field(default_factory=dict)
    adjustments: dict[str, Decimal] = Field(default_factory=dict)
    output_recorded: Decimal | None = None
    node_completed: bool = False
    plan_completed: bool = False
    promoted_assignment_id: UUID | None = None


class ScrapResult(BaseModel):
    assignment_id: UUID
    material_code: str
    scrap_type: ScrapType
    count: Decimal


class RepairResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    assignment_id: UUID
    material_code: str
    quantity: Decimal
    occurred_at: datetime
    note: str
    applied: bool


class ViolationResponse(BaseModel):
    assignment_id: UUID
    material_code: str
    quantities: list[str]
    message: str


class ReconciliationReport(BaseModel):
    """DTO returned by a reconciliation sweep."""

    dry_run: bool
    missing_count: int
    repaired: list[RepairResponse] = Field(default_factory=list)
    violations: list[ViolationResponse] = Field(default_factory=list)
