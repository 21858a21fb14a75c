"""
Plan execution application service.

Coordinates the launch scheduler, the material ledger and the
reconciliation auditor over one unit of work per use case. Every operation
on a plan holds the plan's lock for its duration.
"""

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ...core.config import Settings, get_settings
from ...core.locks import LockRegistry, plan_key, substation_key, worker_key
from ...core.observability import LAUNCH_DURATION, PLAN_LAUNCHES, get_logger
from ...core.retry import RetryConfig
from ...domain.production.entities import (
    Assignment,
    PlanNode,
    ProductionPlan,
    Station,
    StockMovement,
    Substation,
    Worker,
)
from ...domain.production.repositories import UnitOfWork
from ...domain.production.services import (
    AssignmentScheduler,
    CalendarProvider,
    DependencyGraphBuilder,
    MaterialLedger,
    MaterialPlanner,
    ReconciliationAuditor,
    ResourceBoard,
    ResourceMatcher,
    ScheduleOutcome,
)
from ...domain.production.value_objects import (
    AssignmentStatus,
    MasterSchedule,
    NodeStatus,
    PlanStatus,
    ScrapType,
    StationPolicy,
    SubstationStatus,
)
from ...domain.shared.exceptions import (
    AssignmentNotFoundError,
    BusinessRuleViolation,
    DomainError,
    LedgerConflictError,
    LockTimeoutError,
    PlanNotFoundError,
    PlanStatusError,
    PredecessorsIncompleteError,
)
from ..dtos import (
    AssignmentResponse,
    CompletionReport,
    CompletionResult,
    LaunchResult,
    LaunchSummary,
    LaunchWarning,
    ReconciliationReport,
    RepairResponse,
    ResumeResult,
    ScrapResult,
    ViolationResponse,
)

logger = get_logger(__name__)

MATERIAL_SHORTAGE = "MATERIAL_SHORTAGE"
PARTIAL_RESERVATION = "PARTIAL_RESERVATION"


def sequence_key(plan_id: UUID, worker_id: UUID) -> str:
    """Counter key of a worker's queue within one plan."""
    return f"sequence:{plan_id}:{worker_id}"


class PlanExecutionService:
    """
    Application service for launching and executing production plans.

    Launch is all-or-partial: structural defects (cycles, unknown nodes,
    wrong status) raise and leave no trace, while nodes that cannot be
    booked are reported as warnings next to the assignments that were.
    """

    def __init__(
        self,
        unit_of_work_factory: Callable[[], UnitOfWork],
        locks: LockRegistry | None = None,
        config: Settings | None = None,
        retry_config: RetryConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the plan execution service.

        Args:
            unit_of_work_factory: Factory for creating unit of work instances
            locks: Shared lock registry; one per process
            config: Settings override, defaults to the cached settings
            retry_config: Ledger retry policy override
            clock: Source of "now" when callers do not pass one
        """
        self._uow_factory = unit_of_work_factory
        self.config = config or get_settings()
        self.locks = locks or LockRegistry(self.config.LOCK_TIMEOUT_SECONDS)
        self._retry_config = retry_config or RetryConfig.from_settings()
        self._clock = clock
        self._planner = MaterialPlanner()

    # Plan lifecycle

    def launch_plan(self, plan_id: UUID, *, now: datetime | None = None) -> LaunchResult:
        """
        Schedule every node of a draft plan and reserve its materials.

        Raises:
            PlanNotFoundError: If the plan does not exist
            PlanStatusError: If the plan is not a draft
            CycleDetectedError: If the plan's dependencies contain a cycle
            ValidationError: If an edge references a node outside the plan
        """
        now = now or self._clock()
        started = time.perf_counter()
        logger.info("Launching plan", plan_id=str(plan_id), reference=now.isoformat())
        try:
            with self.locks.acquire(plan_key(plan_id)):
                result = self._launch(plan_id, now)
        except DomainError as exc:
            PLAN_LAUNCHES.labels(outcome="failed").inc()
            logger.warning(
                "Plan launch aborted",
                plan_id=str(plan_id),
                code=exc.code,
                message=exc.message,
            )
            raise
        finally:
            LAUNCH_DURATION.observe(time.perf_counter() - started)

        outcome = "partial" if result.summary.unassigned_nodes else "complete"
        PLAN_LAUNCHES.labels(outcome=outcome).inc()
        logger.info(
            "Plan launched",
            plan_id=str(plan_id),
            outcome=outcome,
            assigned=result.summary.assigned_nodes,
            unassigned=result.summary.unassigned_nodes,
            waves=result.summary.wave_count,
        )
        return result

    def _launch(self, plan_id: UUID, now: datetime) -> LaunchResult:
        with self._uow_factory() as uow:
            plan = self._load_plan(uow, plan_id)
            if plan.status is not PlanStatus.DRAFT:
                raise PlanStatusError(plan.id, plan.status.value, "launch")

            # Structural check first: nothing is written for a cyclic plan
            graph = DependencyGraphBuilder().build_for_plan(plan)

            operations = {op.id: op for op in uow.operations.list_all()}
            workers = uow.workers.list_active()
            stations = uow.stations.list_all()
            calendar = CalendarProvider(
                self._master_schedule(uow), self.config.CALENDAR_LOOKAHEAD_DAYS
            )
            matcher = ResourceMatcher(
                workers,
                stations,
                operations,
                StationPolicy(self.config.STATION_PRIORITY_POLICY),
            )
            board = self._seed_board(uow, now, workers, stations)
            ledger = MaterialLedger(uow, self.locks, self._retry_config, self._clock)

            warnings = self._shortage_warnings(uow, plan, operations)
            plan.launch(now)

            partial_holds: dict[UUID, list[StockMovement]] = {}

            def next_sequence(worker_id: UUID) -> int:
                return uow.counters.increment_and_fetch(sequence_key(plan.id, worker_id))

            def commit(
                assignment: Assignment, substation: Substation | None, node: PlanNode
            ) -> None:
                assignment.pre_production_reserved = self._planner.reservation_for(
                    plan.quantity, node, operations.get(node.operation_id)
                )
                assignment.planned_output = self._planner.planned_output(
                    plan.quantity, node
                )
                held = ledger.reserve(
                    assignment, assignment.pre_production_reserved, at=now
                )
                assignment.actual_reserved = {
                    m.material_code: abs(m.quantity) for m in held
                }
                partial_holds[assignment.id] = [m for m in held if m.partial_reservation]
                uow.assignments.add(assignment)
                if substation is not None:
                    uow.stations.save_substation(substation)
                plan.set_node_status(
                    node.id,
                    NodeStatus.QUEUED,
                    now,
                    f"assigned to worker {assignment.worker_id}",
                )

            scheduler = AssignmentScheduler(
                calendar,
                matcher,
                self.locks,
                next_sequence=next_sequence,
                commit=commit,
                booking_scope=uow.savepoint,
                max_parallel=self.config.LAUNCH_MAX_PARALLEL_NODES,
            )
            outcome = scheduler.schedule(plan, graph, now, board)
            uow.plans.save(plan)

            for failure in outcome.failures:
                warnings.append(
                    LaunchWarning(
                        code=failure.code,
                        message=failure.message,
                        node_id=failure.node_id,
                        node_name=plan.node(failure.node_id).name,
                    )
                )
            booked = {a.id: a for a in outcome.assignments}
            for assignment_id, movements in partial_holds.items():
                if assignment_id in booked:
                    warnings.extend(
                        _partial_reservation_warning(plan, booked[assignment_id], m)
                        for m in movements
                    )
            return self._launch_result(
                plan, graph.wave_count, graph.max_parallelism, outcome, warnings
            )

    def _launch_result(
        self,
        plan: ProductionPlan,
        wave_count: int,
        parallel_paths: int,
        outcome: ScheduleOutcome,
        warnings: list[LaunchWarning],
    ) -> LaunchResult:
        assignments = outcome.assignments
        queued = set(outcome.queued_node_ids)
        start = min((a.estimated_start_time for a in assignments), default=None)
        end = max((a.estimated_end_time for a in assignments), default=None)
        duration = int((end - start).total_seconds() // 60) if start and end else 0
        summary = LaunchSummary(
            total_nodes=len(plan.nodes),
            assigned_nodes=len(assignments),
            unassigned_nodes=len(outcome.failures),
            workers_touched=len({a.worker_id for a in assignments}),
            substations_touched=len({a.substation_id for a in assignments}),
            wave_count=wave_count,
            parallel_paths=parallel_paths,
            queued_count=len(queued),
            estimated_start=start,
            estimated_end=end,
            estimated_duration_minutes=duration,
        )
        return LaunchResult(
            plan_id=plan.id,
            assignments=[
                _assignment_response(a, a.node_id in queued) for a in assignments
            ],
            warnings=warnings,
            summary=summary,
        )

    def pause_plan(
        self, plan_id: UUID, reason: str | None = None, *, now: datetime | None = None
    ) -> ProductionPlan:
        """
        Stop new work from starting. Reservations already booked stay in place.

        Raises:
            PlanNotFoundError: If the plan does not exist
            PlanStatusError: If the plan is not active
        """
        now = now or self._clock()
        with self._plan_scope(plan_id) as (uow, plan):
            plan.pause(now, reason)
            uow.plans.save(plan)
        logger.info("Plan paused", plan_id=str(plan_id), reason=reason)
        return plan

    def resume_plan(self, plan_id: UUID, *, now: datetime | None = None) -> ResumeResult:
        """
        Reopen a paused plan.

        Worker cursors and queue counters are recomputed from the stored
        assignments rather than replayed from history.
        """
        now = now or self._clock()
        with self._plan_scope(plan_id) as (uow, plan):
            plan.resume(now)
            assignments = uow.assignments.list_by_plan(plan.id)
            open_assignments = [a for a in assignments if a.status.is_open]

            cursors: dict[UUID, datetime] = {}
            positions: dict[UUID, int] = {}
            for worker_id in sorted({a.worker_id for a in assignments}, key=str):
                queue = uow.assignments.list_open_by_worker(worker_id)
                if queue:
                    cursors[worker_id] = max(
                        max(a.estimated_end_time for a in queue), now
                    )
                highest = uow.assignments.max_sequence_for_worker(plan.id, worker_id)
                positions[worker_id] = uow.counters.raise_to(
                    sequence_key(plan.id, worker_id), highest
                )

            # Work may have finished while the plan was paused
            if plan.all_nodes_completed:
                plan.complete(now)
            uow.plans.save(plan)

        logger.info(
            "Plan resumed",
            plan_id=str(plan_id),
            open_assignments=len(open_assignments),
            workers=len(cursors),
        )
        return ResumeResult(
            plan_id=plan_id,
            resumed_at=now,
            open_assignments=len(open_assignments),
            worker_cursors=cursors,
            sequence_positions=positions,
        )

    def cancel_plan(
        self, plan_id: UUID, reason: str | None = None, *, now: datetime | None = None
    ) -> ProductionPlan:
        """Cancel a plan that was never launched."""
        now = now or self._clock()
        with self._plan_scope(plan_id) as (uow, plan):
            plan.cancel(now, reason)
            uow.plans.save(plan)
        logger.info("Plan cancelled", plan_id=str(plan_id), reason=reason)
        return plan

    # Worker actions

    def start_assignment(
        self, assignment_id: UUID, *, now: datetime | None = None
    ) -> AssignmentResponse:
        """
        Begin work on a queued assignment.

        Raises:
            PlanStatusError: If the plan is not active
            PredecessorsIncompleteError: If a predecessor node is not completed
            BusinessRuleViolation: If another assignment holds the substation
            AssignmentStatusError: If the assignment is not queued
        """
        now = now or self._clock()
        with self._assignment_scope(assignment_id) as (uow, plan, assignment):
            if plan.status is not PlanStatus.ACTIVE:
                raise PlanStatusError(plan.id, plan.status.value, "start_assignment")
            node = plan.node(assignment.node_id)
            pending = [
                p for p in node.predecessor_ids
                if plan.node(p).status is not NodeStatus.COMPLETED
            ]
            if pending:
                raise PredecessorsIncompleteError(node.id, pending)

            with self.locks.acquire(
                worker_key(assignment.worker_id), substation_key(assignment.substation_id)
            ):
                substation = self._substation(uow, assignment.substation_id)
                holder = substation.current_assignment_id
                if holder is not None and holder != assignment.id:
                    raise BusinessRuleViolation(
                        "substation_free",
                        f"Substation {substation.code} is held by assignment {holder}",
                        {"substation_id": str(substation.id), "holder": str(holder)},
                    )
                assignment.start(now)
                substation.occupy(assignment.id, assignment.worker_id, now)
                uow.assignments.save(assignment)
                uow.stations.save_substation(substation)

            plan.set_node_status(node.id, NodeStatus.IN_PROGRESS, now, "assignment started")
            uow.plans.save(plan)

        logger.info(
            "Assignment started",
            assignment_id=str(assignment_id),
            worker_id=str(assignment.worker_id),
            substation_id=str(assignment.substation_id),
        )
        return _assignment_response(assignment)

    def pause_assignment(
        self,
        assignment_id: UUID,
        reason: str | None = None,
        *,
        now: datetime | None = None,
    ) -> AssignmentResponse:
        now = now or self._clock()
        with self._assignment_scope(assignment_id) as (uow, plan, assignment):
            assignment.pause(now, reason)
            uow.assignments.save(assignment)
            plan.set_node_status(assignment.node_id, NodeStatus.PAUSED, now, reason)
            uow.plans.save(plan)
        logger.info("Assignment paused", assignment_id=str(assignment_id), reason=reason)
        return _assignment_response(assignment)

    def resume_assignment(
        self, assignment_id: UUID, *, now: datetime | None = None
    ) -> AssignmentResponse:
        """Continue a paused assignment. Not allowed while the plan is paused."""
        now = now or self._clock()
        with self._assignment_scope(assignment_id) as (uow, plan, assignment):
            if plan.status is PlanStatus.PAUSED:
                raise PlanStatusError(plan.id, plan.status.value, "resume_assignment")
            assignment.resume(now)
            uow.assignments.save(assignment)
            plan.set_node_status(
                assignment.node_id, NodeStatus.IN_PROGRESS, now, "assignment resumed"
            )
            uow.plans.save(plan)
        logger.info("Assignment resumed", assignment_id=str(assignment_id))
        return _assignment_response(assignment)

    def report_completion(
        self,
        assignment_id: UUID,
        report: CompletionReport,
        *,
        now: datetime | None = None,
    ) -> CompletionResult:
        """
        Close an assignment and settle its materials.

        Consumption is booked together with the completion. The adjustment
        follows in its own transaction; if it does not land, the
        reconciliation sweep repairs it.

        Raises:
            AssignmentNotFoundError: If the assignment does not exist
            AssignmentStatusError: If the assignment is not in progress
        """
        now = now or self._clock()
        with self.locks.acquire(plan_key(self._plan_id_of(assignment_id))):
            result, assignment, consumed = self._complete(assignment_id, report, now)
            result.adjustments = self._adjust(assignment, consumed, now)

        logger.info(
            "Completion reported",
            assignment_id=str(assignment_id),
            actual_quantity=str(report.actual_quantity),
            defect_quantity=str(report.defect_quantity),
            node_completed=result.node_completed,
            plan_completed=result.plan_completed,
        )
        return result

    def _complete(
        self, assignment_id: UUID, report: CompletionReport, now: datetime
    ) -> tuple[CompletionResult, Assignment, dict[str, Decimal]]:
        with self._uow_factory() as uow:
            assignment = self._assignment(uow, assignment_id)
            plan = self._load_plan(uow, assignment.plan_id)
            node = plan.node(assignment.node_id)
            ledger = MaterialLedger(uow, self.locks, self._retry_config, self._clock)

            for scrap_type, counts in (
                (ScrapType.INPUT, report.input_scrap),
                (ScrapType.PRODUCTION, report.production_scrap),
            ):
                for code, count in counts.items():
                    if count > 0:
                        assignment.record_scrap(code, count, scrap_type)

            assignment.complete(
                now, report.actual_quantity, report.defect_quantity, report.notes
            )
            consumed = self._planner.consumption_for(
                node,
                report.actual_quantity,
                report.defect_quantity,
                assignment.input_scrap_count,
                assignment.production_scrap_count,
            )
            uow.assignments.save(assignment)
            ledger.consume(assignment, consumed, now)
            output = ledger.record_output(assignment, node, report.actual_quantity, now)
            node.actual_quantity = report.actual_quantity

            promoted = self._release_substation(uow, assignment, now)

            node_done = all(
                a.status is AssignmentStatus.COMPLETED
                for a in uow.assignments.list_by_plan(plan.id)
                if a.node_id == node.id
            )
            if node_done:
                plan.set_node_status(
                    node.id, NodeStatus.COMPLETED, now, "all assignments completed"
                )
            plan_done = plan.status is PlanStatus.ACTIVE and plan.all_nodes_completed
            if plan_done:
                plan.complete(now)
            uow.plans.save(plan)

        result = CompletionResult(
            assignment_id=assignment.id,
            completed_at=now,
            consumed=consumed,
            output_recorded=output.quantity if output else None,
            node_completed=node_done,
            plan_completed=plan_done,
            promoted_assignment_id=promoted.id if promoted else None,
        )
        return result, assignment, consumed

    def _adjust(
        self, assignment: Assignment, consumed: dict[str, Decimal], now: datetime
    ) -> dict[str, Decimal]:
        try:
            with self._uow_factory() as uow:
                ledger = MaterialLedger(uow, self.locks, self._retry_config, self._clock)
                movements = ledger.adjust(assignment, consumed, now)
        except (LedgerConflictError, LockTimeoutError) as exc:
            logger.error(
                "Adjustment not recorded, left for reconciliation",
                assignment_id=str(assignment.id),
                code=exc.code,
                message=exc.message,
            )
            return {}
        return {m.material_code: m.quantity for m in movements}

    def _release_substation(
        self, uow: UnitOfWork, assignment: Assignment, now: datetime
    ) -> Assignment | None:
        """Free the substation and hand it to the next queued assignment."""
        with self.locks.acquire(substation_key(assignment.substation_id)):
            substation = self._substation(uow, assignment.substation_id)
            if substation.current_assignment_id not in (None, assignment.id):
                return None
            substation.release(now)

            waiting = [
                a
                for a in uow.assignments.list_open_by_substation(substation.id)
                if a.status is AssignmentStatus.QUEUED and a.id != assignment.id
            ]
            promoted = None
            if waiting and substation.status is SubstationStatus.AVAILABLE:
                promoted = min(
                    waiting, key=lambda a: (a.estimated_start_time, a.sequence_number)
                )
                substation.reserve(
                    promoted.id, promoted.worker_id, promoted.estimated_end_time, now
                )
            uow.stations.save_substation(substation)

        if promoted is not None:
            logger.info(
                "Queued assignment promoted",
                substation_id=str(substation.id),
                assignment_id=str(promoted.id),
                worker_id=str(promoted.worker_id),
            )
        return promoted

    def report_scrap(
        self,
        assignment_id: UUID,
        material_code: str,
        delta: Decimal,
        scrap_type: ScrapType = ScrapType.INPUT,
    ) -> ScrapResult:
        """Increase a scrap counter. Stock is settled at completion."""
        with self._assignment_scope(assignment_id) as (uow, _plan, assignment):
            count = assignment.record_scrap(material_code, delta, scrap_type)
            uow.assignments.save(assignment)
        logger.info(
            "Scrap recorded",
            assignment_id=str(assignment_id),
            material_code=material_code,
            scrap_type=scrap_type.value,
            count=str(count),
        )
        return ScrapResult(
            assignment_id=assignment_id,
            material_code=material_code,
            scrap_type=scrap_type,
            count=count,
        )

    def undo_scrap(
        self,
        assignment_id: UUID,
        material_code: str,
        delta: Decimal,
        scrap_type: ScrapType = ScrapType.INPUT,
    ) -> ScrapResult:
        with self._assignment_scope(assignment_id) as (uow, _plan, assignment):
            count = assignment.undo_scrap(material_code, delta, scrap_type)
            uow.assignments.save(assignment)
        logger.info(
            "Scrap undone",
            assignment_id=str(assignment_id),
            material_code=material_code,
            scrap_type=scrap_type.value,
            count=str(count),
        )
        return ScrapResult(
            assignment_id=assignment_id,
            material_code=material_code,
            scrap_type=scrap_type,
            count=count,
        )

    # Reconciliation

    def reconcile(self, dry_run: bool = False) -> ReconciliationReport:
        """Find and repair missing adjustments. A dry run writes nothing."""
        with self._uow_factory() as uow:
            ledger = MaterialLedger(uow, self.locks, self._retry_config, self._clock)
            audit = ReconciliationAuditor(uow, ledger).run(dry_run=dry_run)
            if dry_run:
                uow.rollback()

        return ReconciliationReport(
            dry_run=dry_run,
            missing_count=audit.missing_count,
            repaired=[
                RepairResponse.model_validate(repair, from_attributes=True)
                for repair in audit.repairs
            ],
            violations=[
                ViolationResponse(
                    assignment_id=v.assignment_id,
                    material_code=v.material_code,
                    quantities=v.quantities,
                    message=v.message,
                )
                for v in audit.violations
            ],
        )

    # Helpers

    def _master_schedule(self, uow: UnitOfWork) -> MasterSchedule:
        return uow.schedules.get_master_schedule() or MasterSchedule.standard(
            self.config.DEFAULT_WORK_START, self.config.DEFAULT_WORK_END
        )

    def _seed_board(
        self,
        uow: UnitOfWork,
        reference: datetime,
        workers: list[Worker],
        stations: list[Station],
    ) -> ResourceBoard:
        """Board state from work already queued by earlier launches."""
        cursors: dict[UUID, datetime] = {}
        for worker in workers:
            queue = uow.assignments.list_open_by_worker(worker.id)
            if queue:
                cursors[worker.id] = max(a.estimated_end_time for a in queue)
        free: dict[UUID, datetime] = {}
        for station in stations:
            for substation in station.substations:
                queue = uow.assignments.list_open_by_substation(substation.id)
                if queue:
                    free[substation.id] = max(a.estimated_end_time for a in queue)
        return ResourceBoard(reference, stations, cursors, free)

    def _shortage_warnings(
        self, uow: UnitOfWork, plan: ProductionPlan, operations: dict
    ) -> list[LaunchWarning]:
        codes = {
            requirement.material_code
            for node in plan.nodes
            for requirement in node.material_inputs
            if not requirement.is_derived
        }
        materials = uow.materials.list_by_codes(codes)
        warnings = []
        for shortage in self._planner.shortages(plan, operations, materials):
            logger.warning(
                "Material shortage at launch",
                plan_id=str(plan.id),
                material_code=shortage.material_code,
                required=str(shortage.required),
                available=str(shortage.available),
            )
            warnings.append(
                LaunchWarning(
                    code=MATERIAL_SHORTAGE,
                    message=(
                        f"{shortage.material_code}: required {shortage.required}, "
                        f"available {shortage.available}"
                    ),
                    material_code=shortage.material_code,
                    details={
                        "required": str(shortage.required),
                        "available": str(shortage.available),
                        "shortfall": str(shortage.shortfall),
                    },
                )
            )
        return warnings

    def _load_plan(self, uow: UnitOfWork, plan_id: UUID) -> ProductionPlan:
        plan = uow.plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    def _assignment(self, uow: UnitOfWork, assignment_id: UUID) -> Assignment:
        assignment = uow.assignments.get(assignment_id)
        if assignment is None:
            raise AssignmentNotFoundError(assignment_id)
        return assignment

    def _substation(self, uow: UnitOfWork, substation_id: UUID) -> Substation:
        substation = uow.stations.get_substation(substation_id)
        if substation is None:
            raise BusinessRuleViolation(
                "substation_exists",
                f"Substation {substation_id} no longer exists",
                {"substation_id": str(substation_id)},
            )
        return substation

    def _plan_id_of(self, assignment_id: UUID) -> UUID:
        with self._uow_factory() as uow:
            return self._assignment(uow, assignment_id).plan_id

    @contextmanager
    def _plan_scope(
        self, plan_id: UUID
    ) -> Iterator[tuple[UnitOfWork, ProductionPlan]]:
        with self.locks.acquire(plan_key(plan_id)):
            with self._uow_factory() as uow:
                yield uow, self._load_plan(uow, plan_id)

    @contextmanager
    def _assignment_scope(
        self, assignment_id: UUID
    ) -> Iterator[tuple[UnitOfWork, ProductionPlan, Assignment]]:
        plan_id = self._plan_id_of(assignment_id)
        with self.locks.acquire(plan_key(plan_id)):
            with self._uow_factory() as uow:
                assignment = self._assignment(uow, assignment_id)
                yield uow, self._load_plan(uow, plan_id), assignment


def _assignment_response(
    assignment: Assignment, queued: bool = False
) -> AssignmentResponse:
    return AssignmentResponse.model_validate(
        {**assignment.model_dump(), "queued": queued}
    )


def _partial_reservation_warning(
    plan: ProductionPlan, assignment: Assignment, movement: StockMovement
) -> LaunchWarning:
    reserved = abs(movement.quantity)
    return LaunchWarning(
        code=PARTIAL_RESERVATION,
        message=movement.warning or f"{movement.material_code}: partial reservation",
        node_id=assignment.node_id,
        assignment_id=assignment.id,
        node_name=plan.node(assignment.node_id).name,
        material_code=movement.material_code,
        details={
            "requested": str(movement.requested_quantity),
            "reserved": str(reserved),
            "shortfall": str(movement.shortfall),
        },
    )
