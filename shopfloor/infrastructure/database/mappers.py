"""Conversion between domain aggregates and table rows."""

from decimal import Decimal
from uuid import UUID

from pydantic import TypeAdapter

from ...domain.production.entities import (
    Assignment,
    Material,
    Operation,
    PlanNode,
    ProductionPlan,
    Station,
    StockMovement,
    Substation,
    Worker,
)
from ...domain.production.value_objects import (
    Absence,
    EfficiencyFactor,
    MasterSchedule,
    MaterialRequirement,
    PersonalSchedule,
    StationPriority,
)
from .models import (
    AssignmentRow,
    MaterialRow,
    OperationRow,
    PlanNodeRow,
    ProductionPlanRow,
    StationRow,
    StockMovementRow,
    SubstationRow,
    WorkerRow,
)

_station_links = TypeAdapter(list[StationPriority])
_requirements = TypeAdapter(list[MaterialRequirement])
_absences = TypeAdapter(list[Absence])
_uuid_list = TypeAdapter(list[UUID])
_quantities = TypeAdapter(dict[str, Decimal])


def _dump(adapter: TypeAdapter, value):
    return adapter.dump_python(value, mode="json")


# Plans


def plan_to_row(plan: ProductionPlan) -> ProductionPlanRow:
    return ProductionPlanRow(
        id=plan.id,
        work_order_code=plan.work_order_code,
        quantity=plan.quantity,
        status=plan.status,
        launched_at=plan.launched_at,
        paused_at=plan.paused_at,
        resumed_at=plan.resumed_at,
        completed_at=plan.completed_at,
        cancelled_at=plan.cancelled_at,
    )


def node_to_row(node: PlanNode) -> PlanNodeRow:
    row = PlanNodeRow(
        id=node.id,
        plan_id=node.plan_id,
        name=node.name,
        sequence_order=node.sequence_order,
        operation_id=node.operation_id,
    )
    apply_node(row, node)
    return row


def apply_node(row: PlanNodeRow, node: PlanNode) -> None:
    row.required_skills = sorted(node.required_skills)
    row.material_inputs = _dump(_requirements, node.material_inputs)
    row.output_code = node.output_code
    row.output_quantity = node.output_quantity
    row.nominal_time_minutes = node.nominal_time_minutes
    row.status = node.status
    row.actual_quantity = node.actual_quantity
    row.started_at = node.started_at
    row.completed_at = node.completed_at
    row.stations = _dump(_station_links, node.stations)


def plan_to_domain(
    row: ProductionPlanRow,
    node_rows: list[PlanNodeRow],
    predecessors: dict[UUID, list[UUID]],
) -> ProductionPlan:
    nodes = [
        PlanNode(
            id=node_row.id,
            plan_id=node_row.plan_id,
            name=node_row.name,
            sequence_order=node_row.sequence_order,
            operation_id=node_row.operation_id,
            required_skills=set(node_row.required_skills or []),
            material_inputs=_requirements.validate_python(node_row.material_inputs or []),
            output_code=node_row.output_code,
            output_quantity=node_row.output_quantity,
            nominal_time_minutes=node_row.nominal_time_minutes,
            status=node_row.status,
            actual_quantity=node_row.actual_quantity,
            started_at=node_row.started_at,
            completed_at=node_row.completed_at,
            predecessor_ids=sorted(predecessors.get(node_row.id, []), key=str),
            stations=_station_links.validate_python(node_row.stations or []),
        )
        for node_row in node_rows
    ]
    return ProductionPlan(
        id=row.id,
        work_order_code=row.work_order_code,
        quantity=row.quantity,
        status=row.status,
        launched_at=row.launched_at,
        paused_at=row.paused_at,
        resumed_at=row.resumed_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        nodes=nodes,
    )


# Master data


def operation_to_row(operation: Operation) -> OperationRow:
    return OperationRow(
        id=operation.id,
        name=operation.name,
        skills=sorted(operation.skills),
        default_efficiency=operation.default_efficiency.factor,
        expected_defect_rate=operation.expected_defect_rate,
    )


def operation_to_domain(row: OperationRow) -> Operation:
    return Operation(
        id=row.id,
        name=row.name,
        skills=set(row.skills or []),
        default_efficiency=EfficiencyFactor(factor=row.default_efficiency),
        expected_defect_rate=row.expected_defect_rate,
    )


def worker_to_row(worker: Worker) -> WorkerRow:
    return WorkerRow(
        id=worker.id,
        name=worker.name,
        is_active=worker.is_active,
        skills=sorted(worker.skills),
        qualified_operations=sorted(str(op) for op in worker.qualified_operations),
        stations=_dump(_station_links, worker.stations),
        absences=_dump(_absences, worker.absences),
        schedule=worker.schedule.model_dump(mode="json"),
        efficiency=worker.efficiency.factor if worker.efficiency else None,
    )


def worker_to_domain(row: WorkerRow) -> Worker:
    return Worker(
        id=row.id,
        name=row.name,
        is_active=row.is_active,
        skills=set(row.skills or []),
        qualified_operations=set(_uuid_list.validate_python(row.qualified_operations or [])),
        stations=_station_links.validate_python(row.stations or []),
        absences=_absences.validate_python(row.absences or []),
        schedule=PersonalSchedule.model_validate(row.schedule or {}),
        efficiency=(
            EfficiencyFactor(factor=row.efficiency) if row.efficiency is not None else None
        ),
    )


def station_to_row(station: Station) -> StationRow:
    return StationRow(
        id=station.id,
        name=station.name,
        operation_ids=sorted(str(op) for op in station.operation_ids),
        required_skills=sorted(station.required_skills),
    )


def station_to_domain(row: StationRow, substation_rows: list[SubstationRow]) -> Station:
    return Station(
        id=row.id,
        name=row.name,
        operation_ids=set(_uuid_list.validate_python(row.operation_ids or [])),
        required_skills=set(row.required_skills or []),
        substations=[substation_to_domain(s) for s in substation_rows],
    )


def substation_to_row(substation: Substation) -> SubstationRow:
    return SubstationRow(
        id=substation.id,
        station_id=substation.station_id,
        code=substation.code,
        priority=substation.priority,
        status=substation.status,
        current_assignment_id=substation.current_assignment_id,
        assigned_worker_id=substation.assigned_worker_id,
        current_expected_end=substation.current_expected_end,
        version=substation.version,
    )


def substation_to_domain(row: SubstationRow) -> Substation:
    return Substation(
        id=row.id,
        station_id=row.station_id,
        code=row.code,
        priority=row.priority,
        status=row.status,
        current_assignment_id=row.current_assignment_id,
        assigned_worker_id=row.assigned_worker_id,
        current_expected_end=row.current_expected_end,
        version=row.version,
    )


def master_schedule_payload(schedule: MasterSchedule) -> dict:
    return schedule.model_dump(mode="json")


def master_schedule_to_domain(payload: dict) -> MasterSchedule:
    return MasterSchedule.model_validate(payload)


# Execution


def assignment_values(assignment: Assignment) -> dict:
    """Mutable columns of an assignment row."""
    return {
        "status": assignment.status,
        "started_at": assignment.started_at,
        "completed_at": assignment.completed_at,
        "actual_quantity": assignment.actual_quantity,
        "defect_quantity": assignment.defect_quantity,
        "input_scrap_count": _dump(_quantities, assignment.input_scrap_count),
        "production_scrap_count": _dump(_quantities, assignment.production_scrap_count),
        "pre_production_reserved": _dump(_quantities, assignment.pre_production_reserved),
        "actual_reserved": _dump(_quantities, assignment.actual_reserved),
        "planned_output": assignment.planned_output,
        "notes": assignment.notes,
    }


def assignment_to_row(assignment: Assignment) -> AssignmentRow:
    return AssignmentRow(
        id=assignment.id,
        plan_id=assignment.plan_id,
        node_id=assignment.node_id,
        worker_id=assignment.worker_id,
        substation_id=assignment.substation_id,
        operation_id=assignment.operation_id,
        sequence_number=assignment.sequence_number,
        estimated_start_time=assignment.estimated_start_time,
        estimated_end_time=assignment.estimated_end_time,
        effective_time_minutes=assignment.effective_time_minutes,
        version=assignment.version,
        **assignment_values(assignment),
    )


def assignment_to_domain(row: AssignmentRow) -> Assignment:
    return Assignment(
        id=row.id,
        plan_id=row.plan_id,
        node_id=row.node_id,
        worker_id=row.worker_id,
        substation_id=row.substation_id,
        operation_id=row.operation_id,
        sequence_number=row.sequence_number,
        estimated_start_time=row.estimated_start_time,
        estimated_end_time=row.estimated_end_time,
        effective_time_minutes=row.effective_time_minutes,
        status=row.status,
        started_at=row.started_at,
        completed_at=row.completed_at,
        actual_quantity=row.actual_quantity,
        defect_quantity=row.defect_quantity,
        input_scrap_count=_quantities.validate_python(row.input_scrap_count or {}),
        production_scrap_count=_quantities.validate_python(row.production_scrap_count or {}),
        pre_production_reserved=_quantities.validate_python(
            row.pre_production_reserved or {}
        ),
        actual_reserved=_quantities.validate_python(row.actual_reserved or {}),
        planned_output=row.planned_output,
        notes=row.notes,
        version=row.version,
    )


# Stock


def material_to_row(material: Material) -> MaterialRow:
    return MaterialRow(
        id=material.id,
        code=material.code,
        name=material.name,
        unit=material.unit,
        stock=material.stock,
        wip_reserved=material.wip_reserved,
        version=material.version,
    )


def material_to_domain(row: MaterialRow) -> Material:
    return Material(
        id=row.id,
        code=row.code,
        name=row.name,
        unit=row.unit,
        stock=row.stock,
        wip_reserved=row.wip_reserved,
        version=row.version,
    )


def movement_to_row(movement: StockMovement) -> StockMovementRow:
    return StockMovementRow(
        id=movement.id,
        material_code=movement.material_code,
        quantity=movement.quantity,
        subtype=movement.subtype,
        assignment_id=movement.assignment_id,
        plan_id=movement.plan_id,
        node_id=movement.node_id,
        stock_before=movement.stock_before,
        stock_after=movement.stock_after,
        occurred_at=movement.occurred_at,
        notes=movement.notes,
        dedupe_key=movement.dedupe_key,
        requested_quantity=movement.requested_quantity,
        partial_reservation=movement.partial_reservation,
        warning=movement.warning,
    )


def movement_to_domain(row: StockMovementRow) -> StockMovement:
    return StockMovement(
        id=row.id,
        material_code=row.material_code,
        quantity=row.quantity,
        subtype=row.subtype,
        assignment_id=row.assignment_id,
        plan_id=row.plan_id,
        node_id=row.node_id,
        stock_before=row.stock_before,
        stock_after=row.stock_after,
        occurred_at=row.occurred_at,
        notes=row.notes,
        dedupe_key=row.dedupe_key,
        requested_quantity=row.requested_quantity,
        partial_reservation=row.partial_reservation,
        warning=row.warning,
    )
