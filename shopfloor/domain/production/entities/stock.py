"""Stock master and ledger entries."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import ConfigDict, Field

from ...shared.base import Entity
from ..value_objects.enums import MovementSubtype


class Material(Entity):
    """Stock master record for one material code."""

    code: str = Field(min_length=1, max_length=50)
    name: str = ""
    unit: str = "pcs"
    stock: Decimal = Decimal("0")
    wip_reserved: Decimal = Decimal("0")
    # Bumped on every write; writes carry the version they read
    version: int = 0

    @property
    def available(self) -> Decimal:
        return self.stock - self.wip_reserved


def dedupe_key(subtype: MovementSubtype, assignment_id: UUID, material_code: str) -> str:
    """Uniqueness guard for one movement kind per (assignment, material)."""
    return f"{subtype.value}:{assignment_id}:{material_code}"


class StockMovement(Entity):
    """
    Immutable, append-only ledger entry.

    quantity is the signed stock delta. Consumption rows are memo entries:
    they release the WIP hold and carry stock_before == stock_after.

    Reservations also carry requested_quantity. When stock could not cover
    the request, partial_reservation is set and warning explains the gap.
    """

    model_config = ConfigDict(frozen=True)

    material_code: str
    quantity: Decimal
    subtype: MovementSubtype
    assignment_id: UUID | None = None
    plan_id: UUID | None = None
    node_id: UUID | None = None
    stock_before: Decimal
    stock_after: Decimal
    occurred_at: datetime
    notes: str | None = None
    dedupe_key: str | None = None
    requested_quantity: Decimal | None = Field(default=None, gt=0)
    partial_reservation: bool = False
    warning: str | None = None

    @property
    def shortfall(self) -> Decimal:
        if self.requested_quantity is None:
            return Decimal("0")
        return self.requested_quantity - abs(self.quantity)
