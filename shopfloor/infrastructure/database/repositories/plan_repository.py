"""Production plan and status history repositories."""

from collections import defaultdict
from typing import Any
from uuid import UUID

from sqlmodel import col, select

from ....domain.production.entities import ProductionPlan
from ....domain.production.repositories import PlanRepository, StatusHistoryRepository
from ....domain.shared.exceptions import PlanNotFoundError
from ..mappers import apply_node, node_to_row, plan_to_domain, plan_to_row
from ..models import (
    PlanNodePredecessorRow,
    PlanNodeRow,
    ProductionPlanRow,
    StatusHistoryRow,
)
from .base import BaseRepository


class SqlPlanRepository(BaseRepository[ProductionPlanRow], PlanRepository):
    row_class = ProductionPlanRow

    def get(self, plan_id: UUID) -> ProductionPlan | None:
        row = self._get_row(plan_id)
        if row is None:
            return None
        node_rows = self._all(
            select(PlanNodeRow)
            .where(PlanNodeRow.plan_id == plan_id)
            .order_by(col(PlanNodeRow.sequence_order))
        )
        predecessors: dict[UUID, list[UUID]] = defaultdict(list)
        if node_rows:
            edges = self._all(
                select(PlanNodePredecessorRow).where(
                    col(PlanNodePredecessorRow.node_id).in_([n.id for n in node_rows])
                )
            )
            for edge in edges:
                predecessors[edge.node_id].append(edge.predecessor_id)
        return plan_to_domain(row, node_rows, predecessors)

    def add(self, plan: ProductionPlan) -> None:
        self._insert(plan_to_row(plan))
        self._insert(*(node_to_row(node) for node in plan.nodes))
        edges = [
            PlanNodePredecessorRow(node_id=successor, predecessor_id=predecessor)
            for predecessor, successor in plan.edges
        ]
        if edges:
            self._insert(*edges)
        plan.clear_domain_events()

    def save(self, plan: ProductionPlan) -> None:
        row = self._get_row(plan.id)
        if row is None:
            raise PlanNotFoundError(plan.id)
        row.status = plan.status
        row.launched_at = plan.launched_at
        row.paused_at = plan.paused_at
        row.resumed_at = plan.resumed_at
        row.completed_at = plan.completed_at
        row.cancelled_at = plan.cancelled_at
        self.session.add(row)

        for node in plan.nodes:
            node_row = self.session.get(PlanNodeRow, node.id)
            if node_row is None:
                continue
            apply_node(node_row, node)
            self.session.add(node_row)

        self._record_status_events(plan)
        self.session.flush()


class SqlStatusHistoryRepository(BaseRepository[StatusHistoryRow], StatusHistoryRepository):
    row_class = StatusHistoryRow

    def list_for_entity(self, entity_id: UUID) -> list[dict[str, Any]]:
        rows = self._all(
            select(StatusHistoryRow)
            .where(StatusHistoryRow.entity_id == entity_id)
            .order_by(col(StatusHistoryRow.changed_at))
        )
        return [
            {
                "entity_type": row.entity_type,
                "from_status": row.from_status,
                "to_status": row.to_status,
                "changed_at": row.changed_at,
                "reason": row.reason,
            }
            for row in rows
        ]
