"""Production plan aggregate and its nodes."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from ...shared.base import AggregateRoot, Entity
from ...shared.exceptions import PlanStatusError, ValidationError
from ..events import StatusChanged
from ..value_objects.common import MaterialRequirement, StationPriority
from ..value_objects.enums import NodeStatus, PlanStatus


class PlanNode(Entity):
    """One production step in a work order's execution graph."""

    plan_id: UUID
    name: str = Field(min_length=1, max_length=100)
    sequence_order: int = Field(default=1, ge=1)
    operation_id: UUID
    required_skills: set[str] = Field(default_factory=set)
    material_inputs: list[MaterialRequirement] = Field(default_factory=list)
    output_code: str | None = None
    output_quantity: Decimal = Field(default=Decimal("1"), ge=0)
    nominal_time_minutes: int = Field(default=0, ge=0)
    status: NodeStatus = NodeStatus.PENDING
    actual_quantity: Decimal | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    # Explicit edge list, never object links
    predecessor_ids: list[UUID] = Field(default_factory=list)
    stations: list[StationPriority] = Field(default_factory=list)

    def station_priority(self, station_id: UUID) -> int | None:
        for link in self.stations:
            if link.station_id == station_id:
                return link.priority
        return None


class ProductionPlan(AggregateRoot):
    """
    Production plan for a work order.

    Owns its nodes. Lifecycle: draft -> active <-> paused -> completed, or
    draft -> cancelled. Every transition of the plan or one of its nodes
    is recorded as a StatusChanged event.
    """

    work_order_code: str = Field(min_length=1, max_length=50)
    quantity: int = Field(default=1, ge=1)
    status: PlanStatus = PlanStatus.DRAFT
    launched_at: datetime | None = None
    paused_at: datetime | None = None
    resumed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    nodes: list[PlanNode] = Field(default_factory=list)

    @property
    def ordered_nodes(self) -> list[PlanNode]:
        return sorted(self.nodes, key=lambda n: (n.sequence_order, str(n.id)))

    @property
    def edges(self) -> list[tuple[UUID, UUID]]:
        """(predecessor, successor) pairs."""
        return [
            (predecessor_id, node.id)
            for node in self.ordered_nodes
            for predecessor_id in node.predecessor_ids
        ]

    def node(self, node_id: UUID) -> PlanNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise ValidationError("node_id", str(node_id), "node does not belong to plan")

    @property
    def all_nodes_completed(self) -> bool:
        return bool(self.nodes) and all(
            node.status is NodeStatus.COMPLETED for node in self.nodes
        )

    def _transition(
        self,
        target: PlanStatus,
        operation: str,
        at: datetime,
        reason: str | None = None,
    ) -> None:
        if not self.status.can_transition_to(target):
            raise PlanStatusError(self.id, self.status.value, operation)
        old_status = self.status
        self.status = target
        self.add_domain_event(
            StatusChanged(
                aggregate_id=self.id,
                entity_type="plan",
                entity_id=self.id,
                from_status=old_status.value,
                to_status=target.value,
                reason=reason,
                occurred_at=at,
            )
        )

    def launch(self, at: datetime) -> None:
        self._transition(PlanStatus.ACTIVE, "launch", at)
        self.launched_at = at

    def pause(self, at: datetime, reason: str | None = None) -> None:
        self._transition(PlanStatus.PAUSED, "pause", at, reason)
        self.paused_at = at

    def resume(self, at: datetime) -> None:
        self._transition(PlanStatus.ACTIVE, "resume", at)
        self.resumed_at = at

    def complete(self, at: datetime) -> None:
        self._transition(PlanStatus.COMPLETED, "complete", at, "all nodes completed")
        self.completed_at = at

    def cancel(self, at: datetime, reason: str | None = None) -> None:
        self._transition(PlanStatus.CANCELLED, "cancel", at, reason)
        self.cancelled_at = at

    def set_node_status(
        self,
        node_id: UUID,
        target: NodeStatus,
        at: datetime,
        reason: str | None = None,
    ) -> PlanNode:
        """Move a node along its state machine. Repeating the current status is a no-op."""
        node = self.node(node_id)
        if node.status is target:
            return node
        if not node.status.can_transition_to(target):
            raise ValidationError(
                "status",
                target.value,
                f"node {node_id} cannot move from {node.status.value}",
                "INVALID_NODE_TRANSITION",
            )
        old_status = node.status
        node.status = target
        if target is NodeStatus.IN_PROGRESS and node.started_at is None:
            node.started_at = at
        elif target is NodeStatus.COMPLETED:
            node.completed_at = at
        self.add_domain_event(
            StatusChanged(
                aggregate_id=self.id,
                entity_type="node",
                entity_id=node.id,
                from_status=old_status.value,
                to_status=target.value,
                reason=reason,
                occurred_at=at,
            )
        )
        return node
