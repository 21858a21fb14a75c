"""Operation master data."""

from decimal import Decimal

from pydantic import Field

from ...shared.base import Entity
from ..value_objects.common import EfficiencyFactor


class Operation(Entity):
    """A kind of production work (cutting, welding, assembly...)."""

    name: str = Field(min_length=1, max_length=100)
    skills: set[str] = Field(default_factory=set)
    default_efficiency: EfficiencyFactor = Field(default_factory=EfficiencyFactor)
    expected_defect_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Expected defect percentage used to pad material reservations",
    )
