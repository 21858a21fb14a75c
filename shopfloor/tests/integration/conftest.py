from dataclasses import dataclass

import pytest

from shopfloor.domain.production.entities import Operation, Station, Worker
from shopfloor.tests.factories import (
    MaterialFactory,
    OperationFactory,
    PlanBuilder,
    ShopFloorBuilder,
    StationFactory,
    WorkerFactory,
)


@dataclass
class Shop:
    """Persisted master data shared by the execution scenarios."""

    floor: ShopFloorBuilder
    assembly: Operation
    welding: Operation
    line: Station
    workers: list[Worker]

    def plan(self, quantity: int = 1) -> PlanBuilder:
        return PlanBuilder(quantity=quantity)

    def store(self, builder: PlanBuilder):
        plan = builder.build()
        self.floor.add(plan)
        return plan


@pytest.fixture
def shop(floor) -> Shop:
    assembly = OperationFactory.create("Assembly")
    welding = OperationFactory.create("Welding", skills={"welding"})
    line = StationFactory.create("Line 1", substations=2)
    workers = [
        WorkerFactory.create(name="Ada", operations=[assembly], stations=[line]),
        WorkerFactory.create(name="Bo", operations=[assembly], stations=[line]),
    ]
    floor.add(
        assembly,
        welding,
        line,
        *workers,
        MaterialFactory.create("M-100", stock="100"),
        MaterialFactory.create("FRAME", stock="0"),
    )
    return Shop(floor, assembly, welding, line, workers)
