"""
Test Data Factories

Factory classes for creating shop-floor master data, plans and stock
records, plus a builder that persists them through a unit of work.
"""

from collections.abc import Callable, Iterable
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from shopfloor.domain.production.entities import (
    Material,
    Operation,
    PlanNode,
    ProductionPlan,
    Station,
    Substation,
    Worker,
)
from shopfloor.domain.production.repositories import UnitOfWork
from shopfloor.domain.production.value_objects import (
    EfficiencyFactor,
    MasterSchedule,
    MaterialRequirement,
    PersonalSchedule,
    StationPriority,
    SubstationStatus,
)

# Monday
REFERENCE = datetime(2024, 1, 15, 8, 0)


class OperationFactory:
    """Factory for creating Operation test instances."""

    @staticmethod
    def create(
        name: str = "Assembly",
        skills: Iterable[str] = (),
        efficiency: Decimal | str = "1.0",
        defect_rate: Decimal | str = "0",
        **kwargs,
    ) -> Operation:
        return Operation(
            name=name,
            skills=set(skills),
            default_efficiency=EfficiencyFactor(factor=Decimal(efficiency)),
            expected_defect_rate=Decimal(defect_rate),
            **kwargs,
        )


class StationFactory:
    """Factory for creating Station test instances with substations."""

    @staticmethod
    def create(
        name: str = "Line 1",
        substations: int = 2,
        operations: Iterable[Operation] = (),
        required_skills: Iterable[str] = (),
        status: SubstationStatus = SubstationStatus.AVAILABLE,
        **kwargs,
    ) -> Station:
        station_id = kwargs.pop("id", uuid4())
        return Station(
            id=station_id,
            name=name,
            operation_ids={op.id for op in operations},
            required_skills=set(required_skills),
            substations=[
                Substation(
                    station_id=station_id,
                    code=f"{name}-{index}",
                    priority=index,
                    status=status,
                )
                for index in range(1, substations + 1)
            ],
            **kwargs,
        )


class WorkerFactory:
    """Factory for creating Worker test instances."""

    _counter = 0

    @classmethod
    def create(
        cls,
        name: str | None = None,
        operations: Iterable[Operation] = (),
        skills: Iterable[str] = (),
        stations: Iterable[Station | tuple[Station, int]] = (),
        efficiency: Decimal | str | None = None,
        schedule: PersonalSchedule | None = None,
        **kwargs,
    ) -> Worker:
        cls._counter += 1
        links = []
        for entry in stations:
            station, priority = entry if isinstance(entry, tuple) else (entry, 1)
            links.append(StationPriority(station_id=station.id, priority=priority))
        return Worker(
            name=name or f"Worker {cls._counter}",
            qualified_operations={op.id for op in operations},
            skills=set(skills),
            stations=links,
            efficiency=EfficiencyFactor(factor=Decimal(efficiency)) if efficiency else None,
            schedule=schedule or PersonalSchedule(),
            **kwargs,
        )


class MaterialFactory:
    """Factory for creating stock master records."""

    @staticmethod
    def create(code: str = "M-100", stock: Decimal | str = "100", **kwargs) -> Material:
        name = kwargs.pop("name", code)
        return Material(code=code, name=name, stock=Decimal(stock), **kwargs)


class PlanBuilder:
    """Builds a plan node by node. Edges are given as predecessor nodes."""

    def __init__(self, work_order_code: str = "WO-0001", quantity: int = 1) -> None:
        self.plan_id = uuid4()
        self.work_order_code = work_order_code
        self.quantity = quantity
        self.nodes: list[PlanNode] = []

    def node(
        self,
        name: str,
        operation: Operation,
        stations: Iterable[Station | tuple[Station, int]] = (),
        minutes: int = 60,
        skills: Iterable[str] = (),
        inputs: dict[str, Decimal | str] | None = None,
        derived: Iterable[str] = (),
        after: Iterable[PlanNode] = (),
        output_code: str | None = None,
        output_quantity: Decimal | str = "1",
    ) -> PlanNode:
        links = []
        for entry in stations:
            station, priority = entry if isinstance(entry, tuple) else (entry, 1)
            links.append(StationPriority(station_id=station.id, priority=priority))
        derived = set(derived)
        node = PlanNode(
            plan_id=self.plan_id,
            name=name,
            sequence_order=len(self.nodes) + 1,
            operation_id=operation.id,
            required_skills=set(skills),
            material_inputs=[
                MaterialRequirement(
                    material_code=code,
                    required_quantity=Decimal(quantity),
                    is_derived=code in derived,
                )
                for code, quantity in (inputs or {}).items()
            ],
            output_code=output_code,
            output_quantity=Decimal(output_quantity),
            nominal_time_minutes=minutes,
            predecessor_ids=[p.id for p in after],
            stations=links,
        )
        self.nodes.append(node)
        return node

    def link(self, predecessor: PlanNode, successor: PlanNode) -> None:
        successor.predecessor_ids = [*successor.predecessor_ids, predecessor.id]

    def build(self) -> ProductionPlan:
        return ProductionPlan(
            id=self.plan_id,
            work_order_code=self.work_order_code,
            quantity=self.quantity,
            nodes=list(self.nodes),
        )


class ShopFloorBuilder:
    """Persists test data through a unit of work."""

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def add(self, *items) -> None:
        with self._uow_factory() as uow:
            for item in items:
                if isinstance(item, Operation):
                    uow.operations.add(item)
                elif isinstance(item, Station):
                    uow.stations.add(item)
                elif isinstance(item, Worker):
                    uow.workers.add(item)
                elif isinstance(item, Material):
                    uow.materials.add(item)
                elif isinstance(item, ProductionPlan):
                    uow.plans.add(item)
                elif isinstance(item, MasterSchedule):
                    uow.schedules.save_master_schedule(item)
                else:
                    raise TypeError(f"Cannot persist {type(item).__name__}")

    def material(self, code: str) -> Material:
        with self._uow_factory() as uow:
            material = uow.materials.get_by_code(code)
        assert material is not None
        return material

    def plan(self, plan_id: UUID) -> ProductionPlan:
        with self._uow_factory() as uow:
            plan = uow.plans.get(plan_id)
        assert plan is not None
        return plan

    def substation(self, substation_id: UUID) -> Substation:
        with self._uow_factory() as uow:
            substation = uow.stations.get_substation(substation_id)
        assert substation is not None
        return substation
