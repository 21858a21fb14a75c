"""
Material Reservation Ledger

Append-only stock movements against assignments. Every posting reads the
material, writes its new figures with a version precondition and inserts
the movement with a before/after snapshot, all inside one savepoint and
under the material's lock. Version conflicts and lock timeouts are retried
with backoff.

Sign convention: quantity is the signed stock delta.

* wip_reservation(-q): stock -= q, wip_reserved += q, q capped at stock on hand
* consumption(-c): memo entry, releases the WIP hold, stock unchanged
* adjustment(q - c): stock += q - c, zero when usage matched the plan
* production(+p): finished output booked into stock

A closed loop therefore moves stock by exactly -c.
"""

from collections import defaultdict
from collections.abc import Callable, Mapping
from datetime import datetime
from decimal import Decimal

from ....core.locks import LockRegistry, material_key
from ....core.observability import LEDGER_MOVEMENTS, get_logger
from ....core.retry import RetryConfig, retry_on_conflict
from ...shared.exceptions import MaterialNotFoundError
from ..entities.assignment import Assignment
from ..entities.plan import PlanNode
from ..entities.stock import StockMovement, dedupe_key
from ..repositories import UnitOfWork
from ..value_objects.enums import MovementSubtype
from .material_planning import ZERO

logger = get_logger(__name__)


class _AlreadyRecorded(Exception):
    """The dedupe key was taken between the existence check and the insert."""


class MaterialLedger:
    def __init__(
        self,
        uow: UnitOfWork,
        locks: LockRegistry,
        retry_config: RetryConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.uow = uow
        self.locks = locks
        self.retry_config = retry_config or RetryConfig.from_settings()
        self._clock = clock

    # Queries

    def totals_for(
        self, assignment: Assignment, subtype: MovementSubtype
    ) -> dict[str, Decimal]:
        """Absolute quantity per material for one movement kind."""
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for movement in self.uow.movements.list_for_assignment(assignment.id, subtype):
            totals[movement.material_code] += abs(movement.quantity)
        return dict(totals)

    def reserved_for(self, assignment: Assignment) -> dict[str, Decimal]:
        return self.totals_for(assignment, MovementSubtype.WIP_RESERVATION)

    # Postings

    def reserve(
        self,
        assignment: Assignment,
        quantities: Mapping[str, Decimal],
        at: datetime | None = None,
    ) -> list[StockMovement]:
        """
        Book WIP reservations for a new assignment.

        Each material is reserved up to the stock on hand. A short material
        still gets its row, flagged partial_reservation with the requested
        quantity kept, so adjustments settle against what was really held.

        Raises:
            MaterialNotFoundError: If a material has no stock master record.
            LedgerConflictError: If retries are exhausted.
        """
        at = at or self._clock()
        posted = []
        for code, quantity in sorted(quantities.items()):
            if quantity <= 0:
                continue
            movement = self._post(
                code,
                MovementSubtype.WIP_RESERVATION,
                assignment,
                quantity=-quantity,
                stock_delta=-quantity,
                wip_delta=quantity,
                at=at,
                notes=f"WIP reservation for assignment #{assignment.sequence_number}",
                cap_to_stock=True,
            )
            if movement is not None:
                posted.append(movement)
        return posted

    def consume(
        self,
        assignment: Assignment,
        consumed: Mapping[str, Decimal],
        at: datetime | None = None,
    ) -> list[StockMovement]:
        """Record actual usage and release the WIP holds of the assignment."""
        at = at or self._clock()
        reserved = self.reserved_for(assignment)
        posted = []
        for code in sorted(set(consumed) | set(reserved)):
            if self.uow.materials.get_by_code(code) is None:
                logger.warning(
                    "Consumption for material without stock record skipped",
                    assignment_id=str(assignment.id),
                    material_code=code,
                )
                continue
            quantity = consumed.get(code, ZERO)
            movement = self._post(
                code,
                MovementSubtype.CONSUMPTION,
                assignment,
                quantity=-quantity,
                stock_delta=ZERO,
                wip_delta=-reserved.get(code, ZERO),
                at=at,
                notes=assignment.notes,
            )
            if movement is not None:
                posted.append(movement)
        return posted

    def adjust(
        self,
        assignment: Assignment,
        consumed: Mapping[str, Decimal],
        at: datetime | None = None,
    ) -> list[StockMovement]:
        """Close the loop: adjustment = reserved - consumed per material."""
        at = at or self._clock()
        reserved = self.reserved_for(assignment)
        posted = []
        for code in sorted(set(consumed) | set(reserved)):
            if self.uow.materials.get_by_code(code) is None:
                continue
            held = reserved.get(code, ZERO)
            used = consumed.get(code, ZERO)
            movement = self._post(
                code,
                MovementSubtype.ADJUSTMENT,
                assignment,
                quantity=held - used,
                stock_delta=held - used,
                wip_delta=ZERO,
                at=at,
                notes=f"Reserved {held}, consumed {used}",
            )
            if movement is not None:
                posted.append(movement)
        return posted

    def append_adjustment(
        self,
        assignment: Assignment,
        material_code: str,
        quantity: Decimal,
        at: datetime,
        notes: str,
        release_hold: Decimal = ZERO,
    ) -> StockMovement | None:
        """Single adjustment row, skipped when one already exists."""
        return self._post(
            material_code,
            MovementSubtype.ADJUSTMENT,
            assignment,
            quantity=quantity,
            stock_delta=quantity,
            wip_delta=-release_hold,
            at=at,
            notes=notes,
        )

    def record_output(
        self,
        assignment: Assignment,
        node: PlanNode,
        quantity: Decimal,
        at: datetime | None = None,
    ) -> StockMovement | None:
        """Book good output into stock when the output code has a stock record."""
        if not node.output_code or quantity <= 0:
            return None
        if self.uow.materials.get_by_code(node.output_code) is None:
            logger.debug(
                "Output without stock record not booked",
                node_id=str(node.id),
                output_code=node.output_code,
            )
            return None
        return self._post(
            node.output_code,
            MovementSubtype.PRODUCTION,
            assignment,
            quantity=quantity,
            stock_delta=quantity,
            wip_delta=ZERO,
            at=at or self._clock(),
            notes=f"Output of node {node.name}",
        )

    def _post(self, material_code: str, subtype: MovementSubtype, *args, **kwargs):
        post = retry_on_conflict(self.retry_config, f"ledger.{subtype.value}")(
            self._post_once
        )
        return post(material_code, subtype, *args, **kwargs)

    def _post_once(
        self,
        material_code: str,
        subtype: MovementSubtype,
        assignment: Assignment,
        *,
        quantity: Decimal,
        stock_delta: Decimal,
        wip_delta: Decimal,
        at: datetime,
        notes: str | None,
        cap_to_stock: bool = False,
    ) -> StockMovement | None:
        key = dedupe_key(subtype, assignment.id, material_code)
        with self.locks.acquire(material_key(material_code)):
            if self.uow.movements.exists(key):
                logger.debug("Movement already recorded", dedupe_key=key)
                return None

            material = self.uow.materials.get_by_code(material_code)
            if material is None:
                raise MaterialNotFoundError(material_code)

            requested, partial, warning = None, False, None
            if cap_to_stock:
                requested = wip_delta
                granted = min(requested, max(material.stock, ZERO))
                partial = granted < requested
                if partial:
                    warning = (
                        f"Partial reservation: requested {requested}, reserved "
                        f"{granted} (shortfall: {requested - granted})"
                    )
                quantity, stock_delta, wip_delta = -granted, -granted, granted

            stock_after = material.stock + stock_delta
            wip_after = max(material.wip_reserved + wip_delta, ZERO)
            movement = StockMovement(
                material_code=material_code,
                quantity=quantity,
                subtype=subtype,
                assignment_id=assignment.id,
                plan_id=assignment.plan_id,
                node_id=assignment.node_id,
                stock_before=material.stock,
                stock_after=stock_after,
                occurred_at=at,
                notes=notes,
                dedupe_key=key,
                requested_quantity=requested,
                partial_reservation=partial,
                warning=warning,
            )
            try:
                with self.uow.savepoint():
                    self.uow.materials.update_with_version(
                        material_code, material.version, stock_after, wip_after
                    )
                    if not self.uow.movements.insert_if_absent(movement):
                        raise _AlreadyRecorded()
            except _AlreadyRecorded:
                logger.info("Concurrent writer recorded movement first", dedupe_key=key)
                return None

        LEDGER_MOVEMENTS.labels(subtype=subtype.value).inc()
        logger.info(
            "Stock movement recorded",
            subtype=subtype.value,
            material_code=material_code,
            quantity=str(quantity),
            stock_before=str(material.stock),
            stock_after=str(stock_after),
            assignment_id=str(assignment.id),
        )
        if partial:
            logger.warning(
                "Partial reservation",
                material_code=material_code,
                requested=str(requested),
                reserved=str(wip_delta),
                assignment_id=str(assignment.id),
            )
        return movement
