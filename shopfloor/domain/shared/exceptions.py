"""
Domain Exceptions

Defines the error taxonomy of the launch scheduler and the material ledger.
Structural plan defects abort a launch; per-node failures are surfaced as
warnings; ledger collisions are retryable.
"""

from enum import Enum
from uuid import UUID

DetailValue = str | int | float | bool | None


class ErrorType(str, Enum):
    """Error type enumeration for discriminated unions."""

    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    NOT_FOUND = "not_found"
    STRUCTURAL = "structural"
    RESOURCE = "resource"
    CONCURRENCY = "concurrency"
    RECONCILIATION = "reconciliation"
    PERSISTENCE = "persistence"


class DomainError(Exception):
    """Base class for all domain errors with type discrimination."""

    code: str = "DOMAIN_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        details: dict[str, DetailValue] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict[str, str | bool | dict[str, DetailValue]]:
        """Convert error to dictionary for callers of the service layer."""
        return {
            "type": self.error_type.value,
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(DomainError):
    """Raised when input data violates a domain validation rule."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        field_name: str,
        value: DetailValue,
        message: str,
        error_code: str | None = None,
    ) -> None:
        self.field_name = field_name
        self.value = value
        self.error_code = error_code or "VALIDATION_ERROR"
        super().__init__(
            f"Validation failed for field '{field_name}': {message}",
            ErrorType.VALIDATION,
            {
                "field": field_name,
                "value": str(value) if value is not None else None,
                "error_code": self.error_code,
            },
        )


class BusinessRuleViolation(DomainError):
    """Raised when a business rule is violated."""

    code = "BUSINESS_RULE_VIOLATION"

    def __init__(
        self,
        rule_name: str,
        message: str,
        details: dict[str, DetailValue] | None = None,
    ) -> None:
        self.rule_name = rule_name
        merged = {"rule": rule_name, **(details or {})}
        super().__init__(
            f"Business rule '{rule_name}' violated: {message}",
            ErrorType.BUSINESS_RULE,
            merged,
        )


# Structural plan defects
class CycleDetectedError(DomainError):
    """Raised when plan nodes form a dependency cycle. Aborts the whole launch."""

    code = "CYCLE_DETECTED"

    def __init__(self, unprocessed_node_ids: list[UUID]) -> None:
        self.unprocessed_node_ids = unprocessed_node_ids
        super().__init__(
            f"Dependency cycle detected among {len(unprocessed_node_ids)} node(s)",
            ErrorType.STRUCTURAL,
            {"unprocessed_nodes": ",".join(str(n) for n in unprocessed_node_ids)},
        )


# Per-node scheduling failures
class NoEligibleResourceError(DomainError):
    """Raised when no worker/station/substation candidate exists for a node."""

    code = "NO_ELIGIBLE_RESOURCE"

    def __init__(self, node_id: UUID, reason: str = "") -> None:
        self.node_id = node_id
        self.reason = reason
        message = f"No eligible resource for node {node_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message, ErrorType.RESOURCE, {"node_id": str(node_id)})


class CalendarExhaustedError(DomainError):
    """Raised when no working window is found within the look-ahead horizon."""

    code = "CALENDAR_EXHAUSTED"

    def __init__(
        self, worker_id: UUID, horizon_days: int, node_id: UUID | None = None
    ) -> None:
        self.worker_id = worker_id
        self.horizon_days = horizon_days
        self.node_id = node_id
        super().__init__(
            f"No working window for worker {worker_id} within {horizon_days} days",
            ErrorType.RESOURCE,
            {
                "worker_id": str(worker_id),
                "horizon_days": horizon_days,
                "node_id": str(node_id) if node_id else None,
            },
        )


# Concurrency
class LedgerConflictError(DomainError):
    """Raised when a concurrent write collides on a material or assignment."""

    code = "LEDGER_CONFLICT"
    retryable = True

    def __init__(self, entity_type: str, entity_key: str, expected_version: int) -> None:
        self.entity_type = entity_type
        self.entity_key = entity_key
        self.expected_version = expected_version
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_key}",
            ErrorType.CONCURRENCY,
            {
                "entity_type": entity_type,
                "entity_key": entity_key,
                "expected_version": expected_version,
            },
        )


class LockTimeoutError(DomainError):
    """Raised when a lock cannot be acquired within its bounded timeout."""

    code = "LOCK_TIMEOUT"
    retryable = True

    def __init__(self, lock_key: str, timeout_seconds: float) -> None:
        self.lock_key = lock_key
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting for lock {lock_key}",
            ErrorType.CONCURRENCY,
            {"lock_key": lock_key, "timeout_seconds": timeout_seconds},
        )


class ReconciliationInvariantViolation(DomainError):
    """Raised when an assignment carries multiple conflicting adjustments."""

    code = "RECONCILIATION_INVARIANT_VIOLATION"

    def __init__(
        self, assignment_id: UUID, material_code: str, quantities: list[str]
    ) -> None:
        self.assignment_id = assignment_id
        self.material_code = material_code
        self.quantities = quantities
        super().__init__(
            f"Assignment {assignment_id} has {len(quantities)} conflicting "
            f"adjustments for material {material_code}",
            ErrorType.RECONCILIATION,
            {
                "assignment_id": str(assignment_id),
                "material_code": material_code,
                "quantities": ",".join(quantities),
            },
        )


# Lookups
class EntityNotFoundError(DomainError):
    """Raised when an entity is not found in its repository."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: UUID | str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            ErrorType.NOT_FOUND,
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class PlanNotFoundError(EntityNotFoundError):
    """Raised when a production plan is not found."""

    def __init__(self, plan_id: UUID) -> None:
        super().__init__("ProductionPlan", plan_id)


class AssignmentNotFoundError(EntityNotFoundError):
    """Raised when an assignment is not found."""

    def __init__(self, assignment_id: UUID) -> None:
        super().__init__("Assignment", assignment_id)


class MaterialNotFoundError(EntityNotFoundError):
    """Raised when a material code has no stock master record."""

    code = "MATERIAL_NOT_FOUND"

    def __init__(self, material_code: str) -> None:
        super().__init__("Material", material_code)


# Lifecycle
class PlanStatusError(DomainError):
    """Raised when a plan operation is not allowed in the plan's current status."""

    code = "INVALID_PLAN_STATUS"

    def __init__(self, plan_id: UUID, current_status: str, operation: str) -> None:
        self.plan_id = plan_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} plan {plan_id} in status {current_status}",
            ErrorType.BUSINESS_RULE,
            {
                "plan_id": str(plan_id),
                "current_status": current_status,
                "operation": operation,
            },
        )


class AssignmentStatusError(DomainError):
    """Raised when an assignment transition is not allowed."""

    code = "INVALID_ASSIGNMENT_STATUS"

    def __init__(
        self, assignment_id: UUID, current_status: str, target_status: str
    ) -> None:
        self.assignment_id = assignment_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Assignment {assignment_id} cannot move from {current_status} "
            f"to {target_status}",
            ErrorType.BUSINESS_RULE,
            {
                "assignment_id": str(assignment_id),
                "current_status": current_status,
                "target_status": target_status,
            },
        )


class PredecessorsIncompleteError(DomainError):
    """Raised when work is started before all predecessor nodes are completed."""

    code = "PREDECESSORS_INCOMPLETE"

    def __init__(self, node_id: UUID, pending_predecessors: list[UUID]) -> None:
        self.node_id = node_id
        self.pending_predecessors = pending_predecessors
        super().__init__(
            f"Node {node_id} has {len(pending_predecessors)} incomplete predecessor(s)",
            ErrorType.BUSINESS_RULE,
            {
                "node_id": str(node_id),
                "pending_predecessors": ",".join(str(p) for p in pending_predecessors),
            },
        )


class ScrapRecordError(DomainError):
    """Raised when undoing scrap that was never recorded."""

    code = "SCRAP_NOT_RECORDED"

    def __init__(self, assignment_id: UUID, material_code: str, scrap_type: str) -> None:
        self.assignment_id = assignment_id
        self.material_code = material_code
        self.scrap_type = scrap_type
        super().__init__(
            f"No {scrap_type} scrap recorded for material {material_code} "
            f"on assignment {assignment_id}",
            ErrorType.BUSINESS_RULE,
            {
                "assignment_id": str(assignment_id),
                "material_code": material_code,
                "scrap_type": scrap_type,
            },
        )
