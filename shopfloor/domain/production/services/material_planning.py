"""
Material planning math.

Converts node input declarations into reservation and consumption figures.
Inputs are declared per node output, so the consumption ratio of one input
is input quantity / output quantity. Reservations are padded by the
operation's expected defect rate and rounded up to whole units.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from ..entities.operation import Operation
from ..entities.plan import PlanNode, ProductionPlan
from ..entities.stock import Material
from ..value_objects.common import MaterialRequirement

QUANTITY_STEP = Decimal("0.0001")
ZERO = Decimal("0")


def quantize(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class MaterialShortage:
    material_code: str
    required: Decimal
    available: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.required - self.available


class MaterialPlanner:
    def ratio(self, node: PlanNode, requirement: MaterialRequirement) -> Decimal:
        if node.output_quantity > 0:
            return requirement.required_quantity / node.output_quantity
        return requirement.required_quantity

    def planned_output(self, plan_quantity: int, node: PlanNode) -> Decimal:
        return quantize(Decimal(plan_quantity) * node.output_quantity)

    def reservation_for(
        self, plan_quantity: int, node: PlanNode, operation: Operation | None
    ) -> dict[str, Decimal]:
        """
        Pre-production reserved amount per stock material.

        Inputs produced by predecessor nodes are not reserved.
        """
        defect_rate = operation.expected_defect_rate if operation else ZERO
        padding = 1 + defect_rate / 100
        reserved: dict[str, Decimal] = {}
        for requirement in node.material_inputs:
            if requirement.is_derived:
                continue
            if node.output_quantity > 0:
                amount = Decimal(
                    math.ceil(
                        plan_quantity
                        * node.output_quantity
                        * self.ratio(node, requirement)
                        * padding
                    )
                )
            else:
                amount = requirement.required_quantity * plan_quantity
            code = requirement.material_code
            reserved[code] = quantize(reserved.get(code, ZERO) + amount)
        return reserved

    def consumption_for(
        self,
        node: PlanNode,
        actual_quantity: Decimal,
        defect_quantity: Decimal,
        input_scrap: Mapping[str, Decimal],
        production_scrap: Mapping[str, Decimal],
    ) -> dict[str, Decimal]:
        """
        Material actually used: (good + defective output) x ratio, plus any
        scrap counted against the material.
        """
        produced = actual_quantity + defect_quantity
        consumed: dict[str, Decimal] = {}
        for requirement in node.material_inputs:
            code = requirement.material_code
            used = produced * self.ratio(node, requirement)
            consumed[code] = consumed.get(code, ZERO) + used
        for counter in (input_scrap, production_scrap):
            for code, count in counter.items():
                consumed[code] = consumed.get(code, ZERO) + count
        return {code: quantize(amount) for code, amount in consumed.items()}

    def shortages(
        self,
        plan: ProductionPlan,
        operations: Mapping[UUID, Operation],
        materials: Mapping[str, Material],
    ) -> list[MaterialShortage]:
        """Aggregate plan requirements against stock not already held for WIP."""
        required: dict[str, Decimal] = {}
        for node in plan.ordered_nodes:
            for code, amount in self.reservation_for(
                plan.quantity, node, operations.get(node.operation_id)
            ).items():
                required[code] = required.get(code, ZERO) + amount

        found: list[MaterialShortage] = []
        for code in sorted(required):
            material = materials.get(code)
            if material is None:
                continue
            if required[code] > material.available:
                found.append(
                    MaterialShortage(
                        material_code=code,
                        required=required[code],
                        available=material.available,
                    )
                )
        return found
