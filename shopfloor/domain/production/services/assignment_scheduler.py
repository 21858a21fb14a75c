"""
Assignment Scheduler

Walks the dependency waves of a plan and books every node on a worker and
a substation. For each node the start is the latest of the launch
reference, the worker's queue cursor, the predecessors' estimated ends and,
when queueing behind a busy substation, the time it frees up; the result is
aligned to the worker's calendar and the end accumulated across windows.

Per-node failures never stop the launch: they are collected and returned
next to the assignments that did get booked.
"""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from uuid import UUID

from ....core.locks import LockRegistry, substation_key, worker_key
from ....core.observability import ASSIGNMENTS_CREATED, UNASSIGNED_NODES, get_logger
from ...shared.exceptions import (
    CalendarExhaustedError,
    DomainError,
    NoEligibleResourceError,
)
from ..entities.assignment import Assignment
from ..entities.plan import PlanNode, ProductionPlan
from ..entities.station import Station, Substation
from ..entities.worker import Worker
from ..value_objects.common import EfficiencyFactor
from ..value_objects.enums import SubstationStatus
from .calendar_provider import CalendarProvider
from .dependency_graph import DependencyGraph
from .resource_matcher import Candidate, ResourceMatcher

logger = get_logger(__name__)

PREDECESSOR_UNASSIGNED = "PREDECESSOR_UNASSIGNED"
COMMIT_FAILED = "COMMIT_FAILED"

# (assignment, substation to persist or None when queued behind another booking, node)
CommitHook = Callable[[Assignment, Substation | None, PlanNode], None]


@dataclass
class NodeFailure:
    node_id: UUID
    code: str
    message: str


@dataclass
class ScheduleOutcome:
    waves: list[list[UUID]]
    assignments: list[Assignment] = field(default_factory=list)
    failures: list[NodeFailure] = field(default_factory=list)
    # Nodes booked behind a substation that was already taken
    queued_node_ids: list[UUID] = field(default_factory=list)


@dataclass
class _BoardSnapshot:
    worker_id: UUID
    cursor: datetime | None
    substation: Substation
    free_at: datetime | None


class ResourceBoard:
    """
    Mutable view of worker queues and substation occupancy for one launch.

    Seeded from stored state: worker cursors are the end of each worker's
    open work, substation free times the end of the work already queued on
    it. A booking whose commit fails is rolled back here as well.
    """

    def __init__(
        self,
        reference: datetime,
        stations: list[Station],
        worker_cursors: dict[UUID, datetime] | None = None,
        substation_free: dict[UUID, datetime] | None = None,
    ) -> None:
        self.reference = reference
        self._substations = {
            substation.id: substation
            for station in stations
            for substation in station.substations
        }
        self._cursors = dict(worker_cursors or {})
        self._free = dict(substation_free or {})

    def substation(self, substation_id: UUID) -> Substation:
        return self._substations[substation_id]

    def status_of(self, substation: Substation) -> SubstationStatus:
        return self._substations.get(substation.id, substation).status

    def free_at(self, substation: Substation) -> datetime | None:
        current = self._substations.get(substation.id, substation)
        return self._free.get(substation.id, current.current_expected_end)

    def worker_cursor(self, worker_id: UUID) -> datetime:
        cursor = self._cursors.get(worker_id)
        return max(cursor, self.reference) if cursor else self.reference

    def snapshot(self, worker_id: UUID, substation_id: UUID) -> _BoardSnapshot:
        return _BoardSnapshot(
            worker_id=worker_id,
            cursor=self._cursors.get(worker_id),
            substation=self._substations[substation_id],
            free_at=self._free.get(substation_id),
        )

    def book(self, worker_id: UUID, substation: Substation, end: datetime) -> None:
        self._cursors[worker_id] = end
        self._substations[substation.id] = substation
        self._free[substation.id] = max(end, self._free.get(substation.id, end))

    def restore(self, snapshot: _BoardSnapshot) -> None:
        if snapshot.cursor is None:
            self._cursors.pop(snapshot.worker_id, None)
        else:
            self._cursors[snapshot.worker_id] = snapshot.cursor
        substation_id = snapshot.substation.id
        self._substations[substation_id] = snapshot.substation
        if snapshot.free_at is None:
            self._free.pop(substation_id, None)
        else:
            self._free[substation_id] = snapshot.free_at


class _SubstationTaken(Exception):
    """Another node took the substation between ranking and booking."""


@dataclass
class _Attempt:
    assignment: Assignment | None = None
    failure: NodeFailure | None = None
    deferred: bool = False
    queued: bool = False


class AssignmentScheduler:
    """Books plan nodes wave by wave."""

    def __init__(
        self,
        calendar: CalendarProvider,
        matcher: ResourceMatcher,
        locks: LockRegistry,
        next_sequence: Callable[[UUID], int],
        commit: CommitHook,
        booking_scope: Callable[[], AbstractContextManager] = nullcontext,
        max_parallel: int = 1,
    ) -> None:
        self.calendar = calendar
        self.matcher = matcher
        self.locks = locks
        self._next_sequence = next_sequence
        self._commit = commit
        self._booking_scope = booking_scope
        self.max_parallel = max(1, max_parallel)
        # Storage sessions are not shared across threads
        self._commit_lock = Lock()

    def effective_minutes(self, node: PlanNode, worker: Worker) -> int:
        """Nominal time divided by worker efficiency, else operation default."""
        efficiency = worker.efficiency
        if efficiency is None:
            operation = self.matcher.operations.get(node.operation_id)
            efficiency = operation.default_efficiency if operation else EfficiencyFactor()
        return efficiency.apply(node.nominal_time_minutes)

    def schedule(
        self,
        plan: ProductionPlan,
        graph: DependencyGraph,
        reference: datetime,
        board: ResourceBoard,
    ) -> ScheduleOutcome:
        outcome = ScheduleOutcome(waves=[list(wave) for wave in graph.waves])
        ends: dict[UUID, datetime] = {}

        for wave_number, wave in enumerate(graph.waves, start=1):
            nodes = [plan.node(node_id) for node_id in wave]
            attempts = self._run_wave(plan, nodes, graph, reference, board, ends)

            retry: list[PlanNode] = []
            for node, attempt in zip(nodes, attempts):
                if attempt.deferred:
                    retry.append(node)
                else:
                    self._record(outcome, node, attempt, ends)

            # Deferred nodes queue behind the substation that frees up first
            for node in retry:
                attempt = self._schedule_node(
                    plan, node, graph, reference, board, ends, allow_deferred=True
                )
                self._record(outcome, node, attempt, ends)

            logger.debug(
                "Wave scheduled",
                plan_id=str(plan.id),
                wave=wave_number,
                size=len(wave),
                deferred=len(retry),
            )

        return outcome

    def _run_wave(
        self,
        plan: ProductionPlan,
        nodes: list[PlanNode],
        graph: DependencyGraph,
        reference: datetime,
        board: ResourceBoard,
        ends: dict[UUID, datetime],
    ) -> list[_Attempt]:
        def run(node: PlanNode) -> _Attempt:
            return self._schedule_node(
                plan, node, graph, reference, board, ends, allow_deferred=False
            )

        if self.max_parallel == 1 or len(nodes) == 1:
            return [run(node) for node in nodes]
        with ThreadPoolExecutor(max_workers=min(self.max_parallel, len(nodes))) as pool:
            return list(pool.map(run, nodes))

    def _record(
        self,
        outcome: ScheduleOutcome,
        node: PlanNode,
        attempt: _Attempt,
        ends: dict[UUID, datetime],
    ) -> None:
        if attempt.assignment is not None:
            outcome.assignments.append(attempt.assignment)
            ends[node.id] = attempt.assignment.estimated_end_time
            if attempt.queued:
                outcome.queued_node_ids.append(node.id)
            ASSIGNMENTS_CREATED.inc()
            return
        failure = attempt.failure or NodeFailure(
            node.id, NoEligibleResourceError.code, "no substation could be booked"
        )
        outcome.failures.append(failure)
        UNASSIGNED_NODES.labels(reason=failure.code).inc()
        logger.warning(
            "Node left unassigned",
            node_id=str(node.id),
            code=failure.code,
            message=failure.message,
        )

    def _schedule_node(
        self,
        plan: ProductionPlan,
        node: PlanNode,
        graph: DependencyGraph,
        reference: datetime,
        board: ResourceBoard,
        ends: dict[UUID, datetime],
        allow_deferred: bool,
    ) -> _Attempt:
        predecessors = graph.predecessors_of(node.id)
        missing = [p for p in predecessors if p not in ends]
        if missing:
            return _Attempt(
                failure=NodeFailure(
                    node.id,
                    PREDECESSOR_UNASSIGNED,
                    f"{len(missing)} predecessor node(s) were not assigned",
                )
            )
        earliest = max([reference, *(ends[p] for p in predecessors)])

        try:
            candidates = self.matcher.candidates(node, board)
        except NoEligibleResourceError as exc:
            return _Attempt(failure=NodeFailure(node.id, exc.code, exc.message))

        if allow_deferred:
            candidates = sorted(
                candidates,
                key=lambda c: (
                    c.deferred,
                    board.free_at(c.substation) or reference,
                    c.rank(self.matcher.policy),
                ),
            )

        calendar_error: CalendarExhaustedError | None = None
        saw_busy = False
        for candidate in candidates:
            if candidate.deferred and not allow_deferred:
                saw_busy = True
                continue
            try:
                assignment, queued = self._book(plan, node, candidate, earliest, board)
            except _SubstationTaken:
                saw_busy = True
                continue
            except CalendarExhaustedError as exc:
                calendar_error = exc
                continue
            except DomainError as exc:
                return _Attempt(failure=NodeFailure(node.id, exc.code, exc.message))
            except Exception as exc:
                logger.exception("Assignment commit failed", node_id=str(node.id))
                return _Attempt(failure=NodeFailure(node.id, COMMIT_FAILED, str(exc)))
            return _Attempt(assignment=assignment, queued=queued)

        if saw_busy and not allow_deferred:
            return _Attempt(deferred=True)
        if calendar_error is not None:
            return _Attempt(
                failure=NodeFailure(node.id, calendar_error.code, calendar_error.message)
            )
        return _Attempt(
            failure=NodeFailure(
                node.id, NoEligibleResourceError.code, "all candidate substations are taken"
            )
        )

    def _book(
        self,
        plan: ProductionPlan,
        node: PlanNode,
        candidate: Candidate,
        earliest: datetime,
        board: ResourceBoard,
    ) -> tuple[Assignment, bool]:
        worker = candidate.worker
        substation_id = candidate.substation.id
        with self.locks.acquire(worker_key(worker.id), substation_key(substation_id)):
            current = board.substation(substation_id)
            immediate = current.status is SubstationStatus.AVAILABLE
            if not immediate and not candidate.deferred:
                raise _SubstationTaken()

            floor = max(earliest, board.worker_cursor(worker.id))
            if not immediate:
                free_at = board.free_at(current)
                if free_at is not None:
                    floor = max(floor, free_at)

            minutes = self.effective_minutes(node, worker)
            try:
                allocation = self.calendar.allocate(worker, floor, minutes)
            except CalendarExhaustedError as exc:
                exc.node_id = node.id
                raise

            snapshot = board.snapshot(worker.id, current.id)
            with self._commit_lock:
                try:
                    with self._booking_scope():
                        assignment = Assignment(
                            plan_id=plan.id,
                            node_id=node.id,
                            worker_id=worker.id,
                            substation_id=current.id,
                            operation_id=node.operation_id,
                            sequence_number=self._next_sequence(worker.id),
                            estimated_start_time=allocation.start,
                            estimated_end_time=allocation.end,
                            effective_time_minutes=minutes,
                        )
                        updated = current.model_copy(deep=True)
                        if immediate:
                            updated.reserve(
                                assignment.id, worker.id, allocation.end, board.reference
                            )
                        board.book(worker.id, updated, allocation.end)
                        self._commit(assignment, updated if immediate else None, node)
                except Exception:
                    board.restore(snapshot)
                    raise

        logger.info(
            "Assignment booked",
            plan_id=str(plan.id),
            node_id=str(node.id),
            worker_id=str(worker.id),
            substation_id=str(current.id),
            sequence_number=assignment.sequence_number,
            start=allocation.start.isoformat(),
            end=allocation.end.isoformat(),
            queued_behind=not immediate,
        )
        return assignment, not immediate
