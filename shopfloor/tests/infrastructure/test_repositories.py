"""
Repository tests against in-memory SQLite.

Covers entity round trips, versioned updates, the movement dedupe guard,
sequence counters and savepoint behaviour of the unit of work.
"""

from datetime import time, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from shopfloor.domain.production.entities import Assignment, StockMovement, dedupe_key
from shopfloor.domain.production.value_objects import (
    Absence,
    AssignmentStatus,
    MasterSchedule,
    MovementSubtype,
    NodeStatus,
    PersonalSchedule,
    ScheduleMode,
    ScrapType,
    TimeBlock,
)
from shopfloor.domain.shared.exceptions import LedgerConflictError
from shopfloor.infrastructure.database.repositories import EntityAlreadyExistsError
from shopfloor.tests.factories import (
    REFERENCE,
    MaterialFactory,
    OperationFactory,
    PlanBuilder,
    StationFactory,
    WorkerFactory,
)


@pytest.fixture
def plan_setup(floor):
    op = OperationFactory.create(skills={"welding"})
    station = StationFactory.create(substations=2, operations=[op])
    worker = WorkerFactory.create(operations=[op], stations=[station], skills={"welding"})
    builder = PlanBuilder(quantity=3)
    first = builder.node("Cut", op, stations=[station], inputs={"SHEET": "2"}, minutes=30)
    builder.node(
        "Weld",
        op,
        stations=[(station, 2)],
        inputs={"SHEET": "1", "PART": "1"},
        derived={"PART"},
        after=[first],
        output_code="FRAME",
    )
    plan = builder.build()
    floor.add(op, station, worker, plan)
    return plan, op, station, worker


def make_assignment(plan, worker, station, sequence_number=1, **overrides):
    node = plan.ordered_nodes[0]
    values = {
        "plan_id": plan.id,
        "node_id": node.id,
        "worker_id": worker.id,
        "substation_id": station.substations[0].id,
        "operation_id": node.operation_id,
        "sequence_number": sequence_number,
        "estimated_start_time": REFERENCE,
        "estimated_end_time": REFERENCE + timedelta(hours=1),
    }
    values.update(overrides)
    return Assignment(**values)


class TestPlanRepository:
    def test_round_trip(self, plan_setup, uow_factory):
        plan, _, station, _ = plan_setup

        with uow_factory() as uow:
            loaded = uow.plans.get(plan.id)

        assert loaded.work_order_code == plan.work_order_code
        assert loaded.quantity == 3
        cut, weld = loaded.ordered_nodes
        assert weld.predecessor_ids == [cut.id]
        assert weld.material_inputs[1].is_derived
        assert weld.stations[0].station_id == station.id
        assert weld.stations[0].priority == 2
        assert weld.output_code == "FRAME"
        assert loaded.edges == plan.edges

    def test_missing_plan(self, uow_factory):
        with uow_factory() as uow:
            assert uow.plans.get(uuid4()) is None

    def test_save_records_status_history(self, plan_setup, uow_factory):
        plan, *_ = plan_setup

        with uow_factory() as uow:
            loaded = uow.plans.get(plan.id)
            loaded.launch(REFERENCE)
            loaded.set_node_status(loaded.ordered_nodes[0].id, NodeStatus.QUEUED, REFERENCE)
            uow.plans.save(loaded)

        with uow_factory() as uow:
            reloaded = uow.plans.get(plan.id)
            plan_history = uow.history.list_for_entity(plan.id)
            node_history = uow.history.list_for_entity(reloaded.ordered_nodes[0].id)

        assert reloaded.launched_at == REFERENCE
        assert reloaded.ordered_nodes[0].status is NodeStatus.QUEUED
        assert [(h["from_status"], h["to_status"]) for h in plan_history] == [("draft", "active")]
        assert [h["to_status"] for h in node_history] == ["queued"]

    def test_duplicate_plan(self, plan_setup, uow_factory):
        plan, *_ = plan_setup

        with pytest.raises(EntityAlreadyExistsError):
            with uow_factory() as uow:
                uow.plans.add(plan)


class TestResourceRepositories:
    def test_worker_round_trip(self, floor, uow_factory):
        op = OperationFactory.create()
        station = StationFactory.create()
        worker = WorkerFactory.create(
            operations=[op],
            stations=[(station, 2)],
            skills={"crane"},
            efficiency="1.25",
            schedule=PersonalSchedule(
                mode=ScheduleMode.PERSONAL,
                blocks={2: [TimeBlock(start=time(22, 0), end=time(6, 0))]},
            ),
            absences=[Absence(start_date=REFERENCE.date(), end_date=REFERENCE.date())],
        )
        floor.add(op, station, worker)

        with uow_factory() as uow:
            loaded = uow.workers.get(worker.id)

        assert loaded.qualified_operations == {op.id}
        assert loaded.station_priority(station.id) == 2
        assert loaded.efficiency.factor == Decimal("1.25")
        assert loaded.schedule.blocks_for(2)[0].crosses_midnight
        assert loaded.is_absent_on(REFERENCE.date())

    def test_inactive_workers_are_not_listed(self, floor, uow_factory):
        active = WorkerFactory.create(name="Alice")
        floor.add(active, WorkerFactory.create(name="Bob", is_active=False))

        with uow_factory() as uow:
            assert [w.id for w in uow.workers.list_active()] == [active.id]

    def test_station_with_substations(self, floor, uow_factory):
        op = OperationFactory.create()
        station = StationFactory.create("Press", substations=3, operations=[op])
        floor.add(op, station)

        with uow_factory() as uow:
            (loaded,) = uow.stations.list_all()

        assert loaded.supports(op.id)
        assert [s.code for s in loaded.substations_by_priority()] == [
            "Press-1",
            "Press-2",
            "Press-3",
        ]

    def test_substation_version_guard(self, floor, uow_factory):
        station = StationFactory.create(substations=1)
        floor.add(station)
        substation_id = station.substations[0].id

        with uow_factory() as uow:
            first = uow.stations.get_substation(substation_id)
            stale = uow.stations.get_substation(substation_id)
            first.reserve(uuid4(), uuid4(), REFERENCE, REFERENCE)
            uow.stations.save_substation(first)
            stale.reserve(uuid4(), uuid4(), REFERENCE, REFERENCE)
            with pytest.raises(LedgerConflictError):
                uow.stations.save_substation(stale)

        assert floor.substation(substation_id).version == 1

    def test_expected_end_round_trip(self, floor, uow_factory):
        station = StationFactory.create(substations=1)
        floor.add(station)
        substation_id = station.substations[0].id
        expected_end = REFERENCE + timedelta(minutes=90)

        with uow_factory() as uow:
            substation = uow.stations.get_substation(substation_id)
            substation.reserve(uuid4(), uuid4(), expected_end, REFERENCE)
            uow.stations.save_substation(substation)

        loaded = floor.substation(substation_id)
        assert loaded.current_expected_end == expected_end
        assert loaded.current_expected_end.tzinfo is None

    def test_master_schedule_round_trip(self, floor, uow_factory):
        with uow_factory() as uow:
            assert uow.schedules.get_master_schedule() is None

        floor.add(MasterSchedule.standard(time(6, 0), time(14, 0)))
        floor.add(MasterSchedule.standard(time(8, 0), time(17, 0)))

        with uow_factory() as uow:
            schedule = uow.schedules.get_master_schedule()

        assert schedule.blocks_for(0)[0].start == time(8, 0)
        assert schedule.blocks_for(6) == []


class TestAssignmentRepository:
    def test_queries(self, plan_setup, uow_factory):
        plan, _, station, worker = plan_setup
        queued = make_assignment(plan, worker, station, 1)
        done = make_assignment(
            plan,
            worker,
            station,
            2,
            node_id=plan.ordered_nodes[1].id,
            estimated_start_time=REFERENCE + timedelta(hours=1),
            estimated_end_time=REFERENCE + timedelta(hours=2),
        )

        with uow_factory() as uow:
            uow.assignments.add(queued)
            uow.assignments.add(done)
            done.start(REFERENCE)
            done.record_scrap("SHEET", Decimal("1.5"), ScrapType.INPUT)
            done.complete(REFERENCE + timedelta(hours=2), Decimal("3"))
            uow.assignments.save(done)

        with uow_factory() as uow:
            by_plan = uow.assignments.list_by_plan(plan.id)
            open_for_worker = uow.assignments.list_open_by_worker(worker.id)
            open_on_substation = uow.assignments.list_open_by_substation(station.substations[0].id)
            highest = uow.assignments.max_sequence_for_worker(plan.id, worker.id)
            loaded = uow.assignments.get(done.id)

        assert [a.id for a in by_plan] == [queued.id, done.id]
        assert [a.id for a in open_for_worker] == [queued.id]
        assert [a.id for a in open_on_substation] == [queued.id]
        assert highest == 2
        assert loaded.status is AssignmentStatus.COMPLETED
        assert loaded.input_scrap_count == {"SHEET": Decimal("1.5")}
        assert loaded.version == 1

    def test_shop_times_stay_naive(self, plan_setup, uow_factory):
        plan, _, station, worker = plan_setup
        start = REFERENCE + timedelta(minutes=45)
        assignment = make_assignment(
            plan,
            worker,
            station,
            estimated_start_time=start,
            estimated_end_time=start + timedelta(minutes=30),
        )
        with uow_factory() as uow:
            uow.assignments.add(assignment)
            assignment.start(start)
            uow.assignments.save(assignment)

        with uow_factory() as uow:
            loaded = uow.assignments.get(assignment.id)

        assert loaded.estimated_start_time == start
        assert loaded.estimated_end_time == start + timedelta(minutes=30)
        assert loaded.started_at == start
        for value in (loaded.estimated_start_time, loaded.started_at):
            assert value.tzinfo is None

    def test_sequence_is_unique_per_plan_and_worker(self, plan_setup, uow_factory):
        plan, _, station, worker = plan_setup

        with pytest.raises(EntityAlreadyExistsError):
            with uow_factory() as uow:
                uow.assignments.add(make_assignment(plan, worker, station, 1))
                uow.assignments.add(make_assignment(plan, worker, station, 1))

    def test_stale_assignment_save_conflicts(self, plan_setup, uow_factory):
        plan, _, station, worker = plan_setup
        assignment = make_assignment(plan, worker, station)
        with uow_factory() as uow:
            uow.assignments.add(assignment)

        with uow_factory() as uow:
            fresh = uow.assignments.get(assignment.id)
            fresh.start(REFERENCE)
            uow.assignments.save(fresh)

        with pytest.raises(LedgerConflictError):
            with uow_factory() as uow:
                assignment.start(REFERENCE)
                uow.assignments.save(assignment)

    def test_max_sequence_without_assignments(self, uow_factory):
        with uow_factory() as uow:
            assert uow.assignments.max_sequence_for_worker(uuid4(), uuid4()) == 0


class TestMovementRepository:
    def movement(self, assignment_id, quantity="-5", subtype=MovementSubtype.WIP_RESERVATION):
        return StockMovement(
            material_code="M-100",
            quantity=Decimal(quantity),
            subtype=subtype,
            assignment_id=assignment_id,
            stock_before=Decimal("100"),
            stock_after=Decimal("100") + Decimal(quantity),
            occurred_at=REFERENCE,
            dedupe_key=dedupe_key(subtype, assignment_id, "M-100"),
        )

    def test_insert_if_absent(self, uow_factory):
        assignment_id = uuid4()

        with uow_factory() as uow:
            assert uow.movements.insert_if_absent(self.movement(assignment_id))
            assert not uow.movements.insert_if_absent(self.movement(assignment_id))

        with uow_factory() as uow:
            movements = uow.movements.list_for_assignment(assignment_id)
            key = dedupe_key(MovementSubtype.WIP_RESERVATION, assignment_id, "M-100")
            assert uow.movements.exists(key)

        assert len(movements) == 1
        assert movements[0].quantity == Decimal("-5")

    def test_filter_by_subtype(self, uow_factory):
        assignment_id = uuid4()

        with uow_factory() as uow:
            uow.movements.insert_if_absent(self.movement(assignment_id))
            uow.movements.insert_if_absent(
                self.movement(assignment_id, "3", MovementSubtype.ADJUSTMENT)
            )
            adjustments = uow.movements.list_for_assignment(
                assignment_id, MovementSubtype.ADJUSTMENT
            )

        assert [m.quantity for m in adjustments] == [Decimal("3")]

    def test_material_code_is_unique(self, floor):
        floor.add(MaterialFactory.create("M-100"))

        with pytest.raises(EntityAlreadyExistsError):
            floor.add(MaterialFactory.create("M-100"))


class TestCounters:
    def test_increment_starts_at_one(self, uow_factory):
        with uow_factory() as uow:
            values = [uow.counters.increment_and_fetch("sequence:a") for _ in range(3)]
            other = uow.counters.increment_and_fetch("sequence:b")

        assert values == [1, 2, 3]
        assert other == 1

    def test_values_survive_commit(self, uow_factory):
        with uow_factory() as uow:
            uow.counters.increment_and_fetch("sequence:a")
        with uow_factory() as uow:
            assert uow.counters.increment_and_fetch("sequence:a") == 2

    def test_raise_to_never_lowers(self, uow_factory):
        with uow_factory() as uow:
            assert uow.counters.raise_to("sequence:a", 4) == 4
            assert uow.counters.raise_to("sequence:a", 2) == 4
            assert uow.counters.increment_and_fetch("sequence:a") == 5

    def test_rolled_back_increment_is_reused(self, uow_factory):
        with uow_factory() as uow:
            uow.counters.increment_and_fetch("sequence:a")
            with pytest.raises(RuntimeError):
                with uow.savepoint():
                    uow.counters.increment_and_fetch("sequence:a")
                    raise RuntimeError("booking failed")
            assert uow.counters.increment_and_fetch("sequence:a") == 2


class TestUnitOfWork:
    def test_exception_rolls_back(self, uow_factory):
        with pytest.raises(RuntimeError):
            with uow_factory() as uow:
                uow.materials.add(MaterialFactory.create("M-100"))
                raise RuntimeError("boom")

        with uow_factory() as uow:
            assert uow.materials.get_by_code("M-100") is None

    def test_savepoint_rolls_back_alone(self, uow_factory):
        with uow_factory() as uow:
            uow.materials.add(MaterialFactory.create("KEEP"))
            with pytest.raises(RuntimeError):
                with uow.savepoint():
                    uow.materials.add(MaterialFactory.create("DROP"))
                    raise RuntimeError("nested failure")

        with uow_factory() as uow:
            assert uow.materials.get_by_code("KEEP") is not None
            assert uow.materials.get_by_code("DROP") is None

    def test_transaction_helper(self, uow_factory):
        with uow_factory.transaction() as uow:
            uow.materials.add(MaterialFactory.create("M-1"))

        with uow_factory() as uow:
            assert uow.materials.get_by_code("M-1") is not None
