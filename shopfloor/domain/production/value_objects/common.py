"""Common value objects for production planning."""

import math
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from ...shared.base import ValueObject


class StationPriority(ValueObject):
    """A ranked link to a station. Priority 1 is the primary station."""

    station_id: UUID
    priority: int = Field(default=1, ge=1)


class MaterialRequirement(ValueObject):
    """Input material declared on a plan node, per unit of node output."""

    material_code: str = Field(min_length=1, max_length=50)
    required_quantity: Decimal = Field(gt=0)
    # Produced by a predecessor node rather than drawn from stock
    is_derived: bool = False


class EfficiencyFactor(ValueObject):
    """Represents worker or operation efficiency as a multiplier."""

    factor: Decimal = Field(default=Decimal("1.0"), ge=Decimal("0.1"), le=Decimal("2.0"))

    @property
    def percentage(self) -> float:
        """Get efficiency as a percentage."""
        return float(self.factor) * 100

    def apply(self, nominal_minutes: int) -> int:
        """Effective duration in whole minutes, rounded up."""
        return math.ceil(Decimal(nominal_minutes) / self.factor)
