"""
SQLModel table definitions for production execution.

Nested value objects (skills, station links, material inputs, schedules,
scrap counters) are stored as JSON columns. Quantities are fixed-point
numerics. Predecessor links are a separate edge table.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from ...domain.production.value_objects.enums import (
    AssignmentStatus,
    MovementSubtype,
    NodeStatus,
    PlanStatus,
    SubstationStatus,
)

QUANTITY = {"max_digits": 18, "decimal_places": 4}
# Naive shop-floor local time
SHOP_TIME = {"sa_type": DateTime(timezone=False)}


class TimestampedModel(SQLModel):
    """Base model with creation timestamp."""

    created_at: datetime = Field(default_factory=datetime.now, **SHOP_TIME)


class ProductionPlanRow(TimestampedModel, table=True):
    __tablename__ = "production_plans"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    work_order_code: str = Field(max_length=50, index=True)
    quantity: int = Field(default=1, ge=1)
    status: PlanStatus = Field(default=PlanStatus.DRAFT)
    launched_at: datetime | None = Field(default=None, **SHOP_TIME)
    paused_at: datetime | None = Field(default=None, **SHOP_TIME)
    resumed_at: datetime | None = Field(default=None, **SHOP_TIME)
    completed_at: datetime | None = Field(default=None, **SHOP_TIME)
    cancelled_at: datetime | None = Field(default=None, **SHOP_TIME)


class PlanNodeRow(TimestampedModel, table=True):
    __tablename__ = "plan_nodes"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    plan_id: UUID = Field(foreign_key="production_plans.id", index=True)
    name: str = Field(max_length=100)
    sequence_order: int = Field(default=1)
    operation_id: UUID = Field(index=True)
    required_skills: list = Field(default_factory=list, sa_type=JSON)
    material_inputs: list = Field(default_factory=list, sa_type=JSON)
    output_code: str | None = Field(default=None, max_length=50)
    output_quantity: Decimal = Field(default=Decimal("1"), **QUANTITY)
    nominal_time_minutes: int = Field(default=0)
    status: NodeStatus = Field(default=NodeStatus.PENDING)
    actual_quantity: Decimal | None = Field(default=None, **QUANTITY)
    started_at: datetime | None = Field(default=None, **SHOP_TIME)
    completed_at: datetime | None = Field(default=None, **SHOP_TIME)
    stations: list = Field(default_factory=list, sa_type=JSON)


class PlanNodePredecessorRow(SQLModel, table=True):
    __tablename__ = "plan_node_predecessors"

    node_id: UUID = Field(foreign_key="plan_nodes.id", primary_key=True)
    # No foreign key: dangling edges are reported at launch
    predecessor_id: UUID = Field(primary_key=True)


class OperationRow(TimestampedModel, table=True):
    __tablename__ = "operations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=100)
    skills: list = Field(default_factory=list, sa_type=JSON)
    default_efficiency: Decimal = Field(default=Decimal("1.0"), **QUANTITY)
    expected_defect_rate: Decimal = Field(default=Decimal("0"), **QUANTITY)


class WorkerRow(TimestampedModel, table=True):
    __tablename__ = "workers"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=100)
    is_active: bool = Field(default=True, index=True)
    skills: list = Field(default_factory=list, sa_type=JSON)
    qualified_operations: list = Field(default_factory=list, sa_type=JSON)
    stations: list = Field(default_factory=list, sa_type=JSON)
    absences: list = Field(default_factory=list, sa_type=JSON)
    schedule: dict = Field(default_factory=dict, sa_type=JSON)
    efficiency: Decimal | None = Field(default=None, **QUANTITY)


class StationRow(TimestampedModel, table=True):
    __tablename__ = "stations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=100)
    operation_ids: list = Field(default_factory=list, sa_type=JSON)
    required_skills: list = Field(default_factory=list, sa_type=JSON)


class SubstationRow(TimestampedModel, table=True):
    __tablename__ = "substations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    station_id: UUID = Field(foreign_key="stations.id", index=True)
    code: str = Field(max_length=30)
    priority: int = Field(default=1)
    status: SubstationStatus = Field(default=SubstationStatus.AVAILABLE)
    # Weak references, no foreign keys
    current_assignment_id: UUID | None = Field(default=None, index=True)
    assigned_worker_id: UUID | None = None
    current_expected_end: datetime | None = Field(default=None, **SHOP_TIME)
    version: int = Field(default=0)


class AssignmentRow(TimestampedModel, table=True):
    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint(
            "plan_id", "worker_id", "sequence_number", name="uq_plan_worker_sequence"
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    plan_id: UUID = Field(foreign_key="production_plans.id", index=True)
    node_id: UUID = Field(foreign_key="plan_nodes.id", index=True)
    worker_id: UUID = Field(foreign_key="workers.id", index=True)
    substation_id: UUID = Field(foreign_key="substations.id", index=True)
    operation_id: UUID
    sequence_number: int
    estimated_start_time: datetime = Field(**SHOP_TIME)
    estimated_end_time: datetime = Field(**SHOP_TIME)
    effective_time_minutes: int = Field(default=0)
    status: AssignmentStatus = Field(default=AssignmentStatus.QUEUED, index=True)
    started_at: datetime | None = Field(default=None, **SHOP_TIME)
    completed_at: datetime | None = Field(default=None, **SHOP_TIME)
    actual_quantity: Decimal | None = Field(default=None, **QUANTITY)
    defect_quantity: Decimal = Field(default=Decimal("0"), **QUANTITY)
    input_scrap_count: dict = Field(default_factory=dict, sa_type=JSON)
    production_scrap_count: dict = Field(default_factory=dict, sa_type=JSON)
    pre_production_reserved: dict = Field(default_factory=dict, sa_type=JSON)
    actual_reserved: dict = Field(default_factory=dict, sa_type=JSON)
    planned_output: Decimal = Field(default=Decimal("0"), **QUANTITY)
    notes: str | None = None
    version: int = Field(default=0)


class MaterialRow(TimestampedModel, table=True):
    __tablename__ = "materials"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    code: str = Field(max_length=50, unique=True, index=True)
    name: str = Field(default="", max_length=200)
    unit: str = Field(default="pcs", max_length=20)
    stock: Decimal = Field(default=Decimal("0"), **QUANTITY)
    wip_reserved: Decimal = Field(default=Decimal("0"), **QUANTITY)
    version: int = Field(default=0)


class StockMovementRow(TimestampedModel, table=True):
    """Append-only. Rows are never updated or deleted."""

    __tablename__ = "stock_movements"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    material_code: str = Field(max_length=50, index=True)
    quantity: Decimal = Field(**QUANTITY)
    subtype: MovementSubtype = Field(index=True)
    assignment_id: UUID | None = Field(default=None, index=True)
    plan_id: UUID | None = Field(default=None, index=True)
    node_id: UUID | None = None
    stock_before: Decimal = Field(**QUANTITY)
    stock_after: Decimal = Field(**QUANTITY)
    occurred_at: datetime = Field(**SHOP_TIME)
    notes: str | None = None
    dedupe_key: str | None = Field(default=None, max_length=120, unique=True)
    requested_quantity: Decimal | None = Field(default=None, **QUANTITY)
    partial_reservation: bool = Field(default=False, index=True)
    warning: str | None = Field(default=None, max_length=255)


class StatusHistoryRow(SQLModel, table=True):
    __tablename__ = "status_history"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    entity_type: str = Field(max_length=20, index=True)
    entity_id: UUID = Field(index=True)
    from_status: str | None = None
    to_status: str
    changed_at: datetime = Field(**SHOP_TIME)
    reason: str | None = None


class SequenceCounterRow(SQLModel, table=True):
    __tablename__ = "sequence_counters"

    key: str = Field(primary_key=True, max_length=120)
    value: int = Field(default=0)


class MasterScheduleRow(SQLModel, table=True):
    __tablename__ = "master_schedules"

    id: int = Field(default=1, primary_key=True)
    payload: dict = Field(default_factory=dict, sa_type=JSON)
    updated_at: datetime = Field(default_factory=datetime.now, **SHOP_TIME)
