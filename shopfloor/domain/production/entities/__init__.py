from .assignment import Assignment
from .operation import Operation
from .plan import PlanNode, ProductionPlan
from .station import Station, Substation
from .stock import Material, StockMovement, dedupe_key
from .worker import Worker

__all__ = [
    "Assignment",
    "Material",
    "Operation",
    "PlanNode",
    "ProductionPlan",
    "Station",
    "StockMovement",
    "Substation",
    "Worker",
    "dedupe_key",
]
