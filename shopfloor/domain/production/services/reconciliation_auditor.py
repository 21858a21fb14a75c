"""
Reconciliation Auditor

Sweeps completed assignments that hold WIP reservations and makes sure
every (assignment, material) pair has exactly one adjustment. A missing
adjustment is synthesized: zero when no consumption was recorded (usage is
assumed to have matched the reservation), otherwise reserved - consumed.
Pairs carrying several adjustments with different quantities are reported
for manual review and never repaired automatically.

The sweep only appends rows. It is idempotent because each repair is an
insert-if-absent on the adjustment's unique dedupe key.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ....core.observability import RECONCILIATION_REPAIRS, get_logger
from ...shared.exceptions import ReconciliationInvariantViolation
from ..entities.assignment import Assignment
from ..entities.stock import StockMovement
from ..repositories import UnitOfWork
from ..value_objects.enums import MovementSubtype
from .material_planning import ZERO
from .material_reservation_ledger import MaterialLedger

logger = get_logger(__name__)


@dataclass
class Repair:
    assignment_id: UUID
    material_code: str
    quantity: Decimal
    occurred_at: datetime
    note: str
    applied: bool


@dataclass
class AuditResult:
    missing_count: int = 0
    repairs: list[Repair] = field(default_factory=list)
    violations: list[ReconciliationInvariantViolation] = field(default_factory=list)


@dataclass
class _PairState:
    reserved: Decimal = ZERO
    consumed: Decimal | None = None
    adjustments: list[Decimal] = field(default_factory=list)


class ReconciliationAuditor:
    def __init__(self, uow: UnitOfWork, ledger: MaterialLedger) -> None:
        self.uow = uow
        self.ledger = ledger

    def run(self, dry_run: bool = False) -> AuditResult:
        result = AuditResult()
        for assignment in self.uow.assignments.list_completed_with_reservations():
            movements = self.uow.movements.list_for_assignment(assignment.id)
            for code, state in sorted(_pair_states(movements).items()):
                if state.reserved == ZERO and not state.adjustments:
                    continue
                if len(set(state.adjustments)) > 1:
                    violation = ReconciliationInvariantViolation(
                        assignment.id, code, [str(q) for q in state.adjustments]
                    )
                    logger.error(
                        "Conflicting adjustments excluded from repair",
                        assignment_id=str(assignment.id),
                        material_code=code,
                        quantities=[str(q) for q in state.adjustments],
                    )
                    result.violations.append(violation)
                    continue
                if state.adjustments:
                    continue

                result.missing_count += 1
                result.repairs.append(self._repair(assignment, code, state, dry_run))

        logger.info(
            "Reconciliation sweep finished",
            dry_run=dry_run,
            missing=result.missing_count,
            repaired=sum(1 for r in result.repairs if r.applied),
            violations=len(result.violations),
        )
        return result

    def _repair(
        self, assignment: Assignment, code: str, state: _PairState, dry_run: bool
    ) -> Repair:
        occurred_at = assignment.completed_at or assignment.estimated_end_time
        if state.consumed is None:
            quantity = ZERO
            note = (
                "Synthesized by reconciliation: no consumption recorded, "
                "usage assumed to match reservation"
            )
            # Without a consumption row the WIP hold was never released
            release_hold = state.reserved
        else:
            quantity = state.reserved - state.consumed
            note = (
                f"Synthesized by reconciliation: reserved {state.reserved}, "
                f"consumed {state.consumed}"
            )
            release_hold = ZERO

        applied = False
        if not dry_run:
            movement = self.ledger.append_adjustment(
                assignment, code, quantity, occurred_at, note, release_hold=release_hold
            )
            applied = movement is not None
            if applied:
                RECONCILIATION_REPAIRS.labels(dry_run="false").inc()
        else:
            RECONCILIATION_REPAIRS.labels(dry_run="true").inc()

        logger.info(
            "Missing adjustment found",
            assignment_id=str(assignment.id),
            material_code=code,
            quantity=str(quantity),
            dry_run=dry_run,
            applied=applied,
        )
        return Repair(
            assignment_id=assignment.id,
            material_code=code,
            quantity=quantity,
            occurred_at=occurred_at,
            note=note,
            applied=applied,
        )


def _pair_states(movements: list[StockMovement]) -> dict[str, _PairState]:
    states: dict[str, _PairState] = defaultdict(_PairState)
    for movement in movements:
        state = states[movement.material_code]
        if movement.subtype is MovementSubtype.WIP_RESERVATION:
            state.reserved += abs(movement.quantity)
        elif movement.subtype is MovementSubtype.CONSUMPTION:
            state.consumed = (state.consumed or ZERO) + abs(movement.quantity)
        elif movement.subtype is MovementSubtype.ADJUSTMENT:
            state.adjustments.append(movement.quantity)
    return dict(states)
