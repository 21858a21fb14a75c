"""
Resource Matcher

Builds the ranked (worker, station, substation) candidate list for a plan
node. A worker is eligible when active, qualified for the node's operation,
holding every required skill (node skills, operation skills and the
station's sub-skills) and assigned to one of the node's candidate stations
that supports the operation.

For each eligible worker/station pair the highest-priority available
substation is chosen. When none is available but a schedulable one exists,
the candidate is kept as deferred, pointing at the substation that frees
up first, so the scheduler can queue behind it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from ....core.observability import get_logger
from ...shared.exceptions import NoEligibleResourceError
from ..entities.operation import Operation
from ..entities.plan import PlanNode
from ..entities.station import Station, Substation
from ..entities.worker import Worker
from ..value_objects.enums import StationPolicy, SubstationStatus

logger = get_logger(__name__)


class SubstationView(Protocol):
    """Live substation state as seen by the scheduler during a launch."""

    def status_of(self, substation: Substation) -> SubstationStatus: ...

    def free_at(self, substation: Substation) -> datetime | None: ...


class StoredSubstationView:
    """View backed directly by the loaded substation records."""

    def status_of(self, substation: Substation) -> SubstationStatus:
        return substation.status

    def free_at(self, substation: Substation) -> datetime | None:
        return substation.current_expected_end


@dataclass(frozen=True)
class Candidate:
    worker: Worker
    station: Station
    substation: Substation
    node_station_priority: int
    worker_station_priority: int
    deferred: bool = False
    free_at: datetime | None = None

    def rank(self, policy: StationPolicy) -> tuple:
        if policy is StationPolicy.WORKER_FIRST:
            primary = (self.worker_station_priority, self.node_station_priority)
        else:
            primary = (self.node_station_priority, self.worker_station_priority)
        return (
            self.deferred,
            *primary,
            self.substation.priority,
            str(self.worker.id),
            str(self.substation.id),
        )


class ResourceMatcher:
    """Ranks eligible resources for nodes against fixed master data."""

    def __init__(
        self,
        workers: list[Worker],
        stations: list[Station],
        operations: dict[UUID, Operation],
        policy: StationPolicy = StationPolicy.NODE_FIRST,
    ) -> None:
        self.workers = sorted(workers, key=lambda w: str(w.id))
        self.stations = {station.id: station for station in stations}
        self.operations = operations
        self.policy = policy

    def required_skills(self, node: PlanNode, station: Station) -> set[str]:
        operation = self.operations.get(node.operation_id)
        operation_skills = operation.skills if operation else set()
        return set(node.required_skills) | set(operation_skills) | set(station.required_skills)

    def eligible_workers(self, node: PlanNode, station: Station) -> list[Worker]:
        required = self.required_skills(node, station)
        return [
            worker
            for worker in self.workers
            if worker.is_active
            and worker.is_qualified_for(node.operation_id)
            and worker.has_skills(required)
            and worker.station_priority(station.id) is not None
        ]

    def candidates(
        self, node: PlanNode, view: SubstationView | None = None
    ) -> list[Candidate]:
        """
        Ranked candidates for a node. Immediate candidates come before
        deferred ones.

        Raises:
            NoEligibleResourceError: If no candidate exists at all.
        """
        view = view or StoredSubstationView()
        if not node.stations:
            raise NoEligibleResourceError(node.id, "node has no candidate stations")

        found: list[Candidate] = []
        saw_worker = False
        for link in node.stations:
            station = self.stations.get(link.station_id)
            if station is None or not station.supports(node.operation_id):
                continue
            workers = self.eligible_workers(node, station)
            saw_worker = saw_worker or bool(workers)
            if not workers:
                continue
            pick = self._pick_substation(station, view)
            if pick is None:
                continue
            substation, deferred = pick
            for worker in workers:
                found.append(
                    Candidate(
                        worker=worker,
                        station=station,
                        substation=substation,
                        node_station_priority=link.priority,
                        worker_station_priority=worker.station_priority(station.id) or 1,
                        deferred=deferred,
                        free_at=view.free_at(substation) if deferred else None,
                    )
                )

        if not found:
            reason = (
                "no schedulable substation on candidate stations"
                if saw_worker
                else "no qualified worker for required operation and skills"
            )
            logger.info("No eligible resource", node_id=str(node.id), reason=reason)
            raise NoEligibleResourceError(node.id, reason)

        found.sort(key=lambda candidate: candidate.rank(self.policy))
        return found

    def _pick_substation(
        self, station: Station, view: SubstationView
    ) -> tuple[Substation, bool] | None:
        schedulable: list[Substation] = []
        for substation in station.substations_by_priority():
            status = view.status_of(substation)
            if status is SubstationStatus.AVAILABLE:
                return substation, False
            if status.is_schedulable:
                schedulable.append(substation)
        if not schedulable:
            return None
        # Deferred: queue behind whichever substation frees up first
        earliest = min(
            schedulable,
            key=lambda s: (view.free_at(s) or datetime.max, s.priority),
        )
        return earliest, True
