"""Domain enums for production execution."""

from enum import Enum


class PlanStatus(str, Enum):
    """Production plan status enumeration."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if plan status is terminal (cannot transition further)."""
        return self in {PlanStatus.COMPLETED, PlanStatus.CANCELLED}

    def can_transition_to(self, target_status: "PlanStatus") -> bool:
        """Check if plan can transition from current status to target status."""
        valid_transitions = {
            PlanStatus.DRAFT: {PlanStatus.ACTIVE, PlanStatus.CANCELLED},
            PlanStatus.ACTIVE: {PlanStatus.PAUSED, PlanStatus.COMPLETED},
            PlanStatus.PAUSED: {PlanStatus.ACTIVE},
            PlanStatus.COMPLETED: set(),  # Terminal state
            PlanStatus.CANCELLED: set(),  # Terminal state
        }
        return target_status in valid_transitions.get(self, set())


class NodeStatus(str, Enum):
    """Plan node status enumeration."""

    PENDING = "pending"  # Not yet scheduled
    QUEUED = "queued"  # Assignment created, waiting in a worker queue
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"

    def can_transition_to(self, target_status: "NodeStatus") -> bool:
        """Check if node can transition from current status to target status."""
        valid_transitions = {
            NodeStatus.PENDING: {NodeStatus.QUEUED},
            NodeStatus.QUEUED: {NodeStatus.IN_PROGRESS},
            NodeStatus.IN_PROGRESS: {NodeStatus.PAUSED, NodeStatus.COMPLETED},
            NodeStatus.PAUSED: {NodeStatus.IN_PROGRESS},
            NodeStatus.COMPLETED: set(),
        }
        return target_status in valid_transitions.get(self, set())


class AssignmentStatus(str, Enum):
    """Worker assignment status enumeration."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"

    @property
    def is_open(self) -> bool:
        """Assignment still holds its substation."""
        return self is not AssignmentStatus.COMPLETED

    def can_transition_to(self, target_status: "AssignmentStatus") -> bool:
        """Check if assignment can transition from current status to target status."""
        valid_transitions = {
            AssignmentStatus.QUEUED: {AssignmentStatus.IN_PROGRESS},
            AssignmentStatus.IN_PROGRESS: {
                AssignmentStatus.PAUSED,
                AssignmentStatus.COMPLETED,
            },
            AssignmentStatus.PAUSED: {AssignmentStatus.IN_PROGRESS},
            AssignmentStatus.COMPLETED: set(),
        }
        return target_status in valid_transitions.get(self, set())


class SubstationStatus(str, Enum):
    """Substation operational status enumeration."""

    AVAILABLE = "available"
    RESERVED = "reserved"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"

    @property
    def is_schedulable(self) -> bool:
        """Substation may receive queued work now or once it frees up."""
        return self is not SubstationStatus.MAINTENANCE


class MovementSubtype(str, Enum):
    """Stock movement subtype enumeration."""

    WIP_RESERVATION = "wip_reservation"
    CONSUMPTION = "consumption"
    ADJUSTMENT = "adjustment"
    PRODUCTION = "production"

    @property
    def affects_stock(self) -> bool:
        """Consumption rows are memo entries that release the WIP hold only."""
        return self is not MovementSubtype.CONSUMPTION


class ScrapType(str, Enum):
    """Scrap counter kinds kept on an assignment."""

    INPUT = "input"
    PRODUCTION = "production"


class ScheduleMode(str, Enum):
    """Worker schedule source."""

    COMPANY = "company"
    PERSONAL = "personal"


class WorkType(str, Enum):
    """Company master schedule layout."""

    FIXED = "fixed"
    SHIFTS = "shifts"


class BlockType(str, Enum):
    """Schedule block kind. Only work blocks produce usable windows."""

    WORK = "work"
    BREAK = "break"


class StationPolicy(str, Enum):
    """Candidate ordering policy for the resource matcher."""

    NODE_FIRST = "node_first"
    WORKER_FIRST = "worker_first"
