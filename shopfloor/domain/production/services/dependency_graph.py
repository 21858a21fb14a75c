"""
Dependency Graph Builder

Builds the plan DAG from an explicit predecessor edge list and groups it
into ready waves with Kahn's algorithm. Wave 1 holds the nodes without
predecessors; every later wave holds the nodes whose predecessors all sit
in earlier waves.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from uuid import UUID

from ....core.observability import get_logger
from ...shared.exceptions import CycleDetectedError, ValidationError
from ..entities.plan import ProductionPlan

logger = get_logger(__name__)


@dataclass(frozen=True)
class DependencyGraph:
    """Immutable result of a successful graph build."""

    waves: tuple[tuple[UUID, ...], ...]
    predecessors: dict[UUID, frozenset[UUID]] = field(repr=False)
    successors: dict[UUID, frozenset[UUID]] = field(repr=False)

    @property
    def topological_order(self) -> list[UUID]:
        return [node_id for wave in self.waves for node_id in wave]

    @property
    def wave_count(self) -> int:
        return len(self.waves)

    @property
    def max_parallelism(self) -> int:
        """Width of the widest wave."""
        return max((len(wave) for wave in self.waves), default=0)

    def predecessors_of(self, node_id: UUID) -> frozenset[UUID]:
        return self.predecessors.get(node_id, frozenset())

    def successors_of(self, node_id: UUID) -> frozenset[UUID]:
        return self.successors.get(node_id, frozenset())

    def wave_index(self, node_id: UUID) -> int:
        """1-based wave number of a node."""
        for index, wave in enumerate(self.waves, start=1):
            if node_id in wave:
                return index
        raise KeyError(node_id)


class DependencyGraphBuilder:
    """Kahn's algorithm over (predecessor, successor) edges."""

    def build(
        self, node_ids: Sequence[UUID], edges: Iterable[tuple[UUID, UUID]]
    ) -> DependencyGraph:
        """
        Build waves for the given nodes.

        Wave members keep the order of node_ids, so the same input always
        yields the same waves.

        Raises:
            ValidationError: If an edge references an unknown node.
            CycleDetectedError: If some nodes can never become ready.
        """
        known = set(node_ids)
        predecessors: dict[UUID, set[UUID]] = {node_id: set() for node_id in node_ids}
        successors: dict[UUID, set[UUID]] = {node_id: set() for node_id in node_ids}

        for predecessor_id, successor_id in edges:
            for endpoint in (predecessor_id, successor_id):
                if endpoint not in known:
                    raise ValidationError(
                        "predecessor_ids",
                        str(endpoint),
                        "edge references a node outside the plan",
                        "UNKNOWN_NODE",
                    )
            predecessors[successor_id].add(predecessor_id)
            successors[predecessor_id].add(successor_id)

        in_degree = {node_id: len(predecessors[node_id]) for node_id in node_ids}
        position = {node_id: index for index, node_id in enumerate(node_ids)}

        waves: list[tuple[UUID, ...]] = []
        current = [node_id for node_id in node_ids if in_degree[node_id] == 0]
        processed = 0
        while current:
            waves.append(tuple(current))
            processed += len(current)
            ready: list[UUID] = []
            for node_id in current:
                for successor_id in successors[node_id]:
                    in_degree[successor_id] -= 1
                    if in_degree[successor_id] == 0:
                        ready.append(successor_id)
            current = sorted(ready, key=position.__getitem__)

        if processed < len(node_ids):
            unprocessed = [node_id for node_id in node_ids if in_degree[node_id] > 0]
            logger.error(
                "Dependency cycle detected",
                unprocessed_count=len(unprocessed),
                node_ids=[str(n) for n in unprocessed],
            )
            raise CycleDetectedError(unprocessed)

        return DependencyGraph(
            waves=tuple(waves),
            predecessors={k: frozenset(v) for k, v in predecessors.items()},
            successors={k: frozenset(v) for k, v in successors.items()},
        )

    def build_for_plan(self, plan: ProductionPlan) -> DependencyGraph:
        node_ids = [node.id for node in plan.ordered_nodes]
        return self.build(node_ids, plan.edges)
