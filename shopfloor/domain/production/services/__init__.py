from .assignment_scheduler import (
    AssignmentScheduler,
    NodeFailure,
    ResourceBoard,
    ScheduleOutcome,
)
from .calendar_provider import Allocation, CalendarProvider
from .dependency_graph import DependencyGraph, DependencyGraphBuilder
from .material_planning import MaterialPlanner, MaterialShortage
from .material_reservation_ledger import MaterialLedger
from .reconciliation_auditor import AuditResult, ReconciliationAuditor, Repair
from .resource_matcher import Candidate, ResourceMatcher

__all__ = [
    "Allocation",
    "AssignmentScheduler",
    "AuditResult",
    "CalendarProvider",
    "Candidate",
    "DependencyGraph",
    "DependencyGraphBuilder",
    "MaterialLedger",
    "MaterialPlanner",
    "MaterialShortage",
    "NodeFailure",
    "ReconciliationAuditor",
    "Repair",
    "ResourceBoard",
    "ResourceMatcher",
    "ScheduleOutcome",
]
