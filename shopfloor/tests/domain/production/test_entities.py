"""Tests for plan, assignment and substation state machines."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from shopfloor.domain.production.entities import Assignment, Substation
from shopfloor.domain.production.events import StatusChanged
from shopfloor.domain.production.value_objects import (
    AssignmentStatus,
    EfficiencyFactor,
    NodeStatus,
    PlanStatus,
    ScrapType,
    SubstationStatus,
    TimeWindow,
)
from shopfloor.domain.shared.exceptions import (
    AssignmentStatusError,
    BusinessRuleViolation,
    PlanStatusError,
    ScrapRecordError,
    ValidationError,
)
from shopfloor.tests.factories import REFERENCE, OperationFactory, PlanBuilder


def make_assignment(**overrides) -> Assignment:
    values = {
        "plan_id": uuid4(),
        "node_id": uuid4(),
        "worker_id": uuid4(),
        "substation_id": uuid4(),
        "operation_id": uuid4(),
        "sequence_number": 1,
        "estimated_start_time": REFERENCE,
        "estimated_end_time": REFERENCE + timedelta(hours=1),
    }
    values.update(overrides)
    return Assignment(**values)


class TestProductionPlan:
    @pytest.fixture
    def plan(self):
        builder = PlanBuilder()
        op = OperationFactory.create()
        first = builder.node("First", op)
        builder.node("Second", op, after=[first])
        return builder.build()

    def test_lifecycle(self, plan):
        plan.launch(REFERENCE)
        plan.pause(REFERENCE + timedelta(hours=1), "material check")
        plan.resume(REFERENCE + timedelta(hours=2))

        assert plan.status is PlanStatus.ACTIVE
        assert plan.launched_at == REFERENCE
        events = plan.get_domain_events()
        assert [(e.from_status, e.to_status) for e in events] == [
            ("draft", "active"),
            ("active", "paused"),
            ("paused", "active"),
        ]
        assert events[1].reason == "material check"
        assert [e.occurred_at for e in events] == [
            REFERENCE,
            REFERENCE + timedelta(hours=1),
            REFERENCE + timedelta(hours=2),
        ]

    def test_cannot_launch_twice(self, plan):
        plan.launch(REFERENCE)

        with pytest.raises(PlanStatusError, match="launch"):
            plan.launch(REFERENCE)

    def test_cancel_only_from_draft(self, plan):
        plan.launch(REFERENCE)

        with pytest.raises(PlanStatusError):
            plan.cancel(REFERENCE)

    def test_completed_is_terminal(self, plan):
        plan.launch(REFERENCE)
        plan.complete(REFERENCE)

        assert plan.status.is_terminal
        with pytest.raises(PlanStatusError):
            plan.pause(REFERENCE)

    def test_edges_follow_predecessor_lists(self, plan):
        first, second = plan.ordered_nodes

        assert plan.edges == [(first.id, second.id)]

    def test_node_status_transitions(self, plan):
        node = plan.ordered_nodes[0]

        plan.set_node_status(node.id, NodeStatus.QUEUED, REFERENCE)
        plan.set_node_status(node.id, NodeStatus.IN_PROGRESS, REFERENCE)
        plan.set_node_status(node.id, NodeStatus.COMPLETED, REFERENCE + timedelta(hours=1))

        assert node.started_at == REFERENCE
        assert node.completed_at == REFERENCE + timedelta(hours=1)
        node_events = [e for e in plan.get_domain_events() if e.entity_type == "node"]
        assert len(node_events) == 3
        assert all(isinstance(e, StatusChanged) for e in node_events)

    def test_repeating_node_status_is_a_no_op(self, plan):
        node = plan.ordered_nodes[0]
        plan.set_node_status(node.id, NodeStatus.QUEUED, REFERENCE)
        plan.clear_domain_events()

        plan.set_node_status(node.id, NodeStatus.QUEUED, REFERENCE)

        assert plan.get_domain_events() == []

    def test_invalid_node_transition(self, plan):
        node = plan.ordered_nodes[0]

        with pytest.raises(ValidationError) as exc_info:
            plan.set_node_status(node.id, NodeStatus.COMPLETED, REFERENCE)

        assert exc_info.value.error_code == "INVALID_NODE_TRANSITION"

    def test_unknown_node(self, plan):
        with pytest.raises(ValidationError, match="does not belong"):
            plan.node(uuid4())

    def test_all_nodes_completed_needs_nodes(self):
        assert not PlanBuilder().build().all_nodes_completed


class TestAssignment:
    def test_happy_path(self):
        assignment = make_assignment()

        assignment.start(REFERENCE)
        assignment.pause(REFERENCE, "tool change")
        assignment.resume(REFERENCE)
        assignment.complete(REFERENCE + timedelta(hours=1), Decimal("8"), Decimal("1"), "ok")

        assert assignment.is_completed
        assert assignment.actual_quantity == Decimal("8")
        assert assignment.defect_quantity == Decimal("1")
        assert assignment.notes == "ok"
        assert [e.to_status for e in assignment.get_domain_events()] == [
            "in_progress",
            "paused",
            "in_progress",
            "completed",
        ]

    def test_events_are_stamped_with_transition_time(self):
        assignment = make_assignment()
        paused_at = REFERENCE + timedelta(minutes=20)

        assignment.start(REFERENCE)
        assignment.pause(paused_at)

        assert [e.occurred_at for e in assignment.get_domain_events()] == [
            REFERENCE,
            paused_at,
        ]

    def test_cannot_complete_queued(self):
        with pytest.raises(AssignmentStatusError):
            make_assignment().complete(REFERENCE, Decimal("1"))

    def test_negative_quantity_rejected(self):
        assignment = make_assignment()
        assignment.start(REFERENCE)

        with pytest.raises(ValidationError):
            assignment.complete(REFERENCE, Decimal("-1"))
        assert assignment.status is AssignmentStatus.IN_PROGRESS

    def test_estimates_must_be_ordered(self):
        with pytest.raises(ValueError, match="must not precede"):
            make_assignment(estimated_end_time=REFERENCE - timedelta(minutes=1))

    def test_sequence_number_starts_at_one(self):
        with pytest.raises(ValueError):
            make_assignment(sequence_number=0)


class TestScrapCounters:
    def test_record_accumulates(self):
        assignment = make_assignment()

        assignment.record_scrap("M-100", Decimal("2"), ScrapType.INPUT)
        count = assignment.record_scrap("M-100", Decimal("1"), ScrapType.INPUT)

        assert count == Decimal("3")
        assert assignment.input_scrap_count == {"M-100": Decimal("3")}
        assert assignment.production_scrap_count == {}

    def test_undo_floors_at_zero_and_drops_entry(self):
        assignment = make_assignment()
        assignment.record_scrap("M-100", Decimal("2"), ScrapType.PRODUCTION)

        remaining = assignment.undo_scrap("M-100", Decimal("5"), ScrapType.PRODUCTION)

        assert remaining == Decimal("0")
        assert assignment.production_scrap_count == {}

    def test_undo_without_record(self):
        with pytest.raises(ScrapRecordError):
            make_assignment().undo_scrap("M-100", Decimal("1"), ScrapType.INPUT)

    def test_delta_must_be_positive(self):
        with pytest.raises(ValidationError):
            make_assignment().record_scrap("M-100", Decimal("0"), ScrapType.INPUT)

    def test_completed_assignment_rejects_scrap(self):
        assignment = make_assignment()
        assignment.start(REFERENCE)
        assignment.complete(REFERENCE, Decimal("1"))

        with pytest.raises(AssignmentStatusError):
            assignment.record_scrap("M-100", Decimal("1"), ScrapType.INPUT)


class TestSubstation:
    @pytest.fixture
    def substation(self):
        return Substation(station_id=uuid4(), code="L1-1")

    def test_reserve_occupy_release(self, substation):
        assignment_id, worker_id = uuid4(), uuid4()

        substation.reserve(assignment_id, worker_id, REFERENCE, REFERENCE)
        substation.occupy(assignment_id, worker_id, REFERENCE)
        substation.release(REFERENCE)

        assert substation.status is SubstationStatus.AVAILABLE
        assert substation.current_assignment_id is None
        assert [e.to_status for e in substation.get_domain_events()] == [
            "reserved",
            "in_use",
            "available",
        ]

    def test_events_are_stamped_with_transition_time(self, substation):
        assignment_id, worker_id = uuid4(), uuid4()
        done_at = REFERENCE + timedelta(hours=3)

        substation.reserve(assignment_id, worker_id, done_at, REFERENCE)
        substation.release(done_at)

        reserved, released = substation.get_domain_events()
        assert reserved.occurred_at == REFERENCE
        assert released.occurred_at == done_at

    def test_cannot_reserve_twice(self, substation):
        substation.reserve(uuid4(), uuid4(), REFERENCE, REFERENCE)

        with pytest.raises(BusinessRuleViolation, match="reserved"):
            substation.reserve(uuid4(), uuid4(), REFERENCE, REFERENCE)

    def test_maintenance_blocks_occupation(self, substation):
        substation.status = SubstationStatus.MAINTENANCE

        with pytest.raises(BusinessRuleViolation):
            substation.occupy(uuid4(), uuid4(), REFERENCE)

    def test_release_keeps_maintenance(self, substation):
        assignment_id, worker_id = uuid4(), uuid4()
        substation.reserve(assignment_id, worker_id, REFERENCE, REFERENCE)
        substation.occupy(assignment_id, worker_id, REFERENCE)
        substation.start_maintenance(REFERENCE, "spindle replaced")

        substation.release(REFERENCE)

        assert substation.status is SubstationStatus.MAINTENANCE
        assert substation.current_assignment_id is None
        with pytest.raises(BusinessRuleViolation):
            substation.reserve(uuid4(), uuid4(), REFERENCE, REFERENCE)

    def test_end_maintenance(self, substation):
        substation.start_maintenance(REFERENCE)

        substation.end_maintenance(REFERENCE)

        assert substation.status is SubstationStatus.AVAILABLE
        with pytest.raises(BusinessRuleViolation):
            substation.end_maintenance(REFERENCE)

    def test_end_maintenance_returns_running_work(self, substation):
        assignment_id = uuid4()
        substation.reserve(assignment_id, uuid4(), REFERENCE, REFERENCE)
        substation.occupy(assignment_id, uuid4(), REFERENCE)
        substation.start_maintenance(REFERENCE)

        substation.end_maintenance(REFERENCE)

        assert substation.status is SubstationStatus.IN_USE


class TestValueObjects:
    def test_time_window_is_half_open(self):
        window = TimeWindow(start=REFERENCE, end=REFERENCE + timedelta(hours=1))

        assert window.contains(REFERENCE)
        assert not window.contains(REFERENCE + timedelta(hours=1))
        assert window.duration_minutes == 60

    def test_empty_time_window_rejected(self):
        with pytest.raises(ValueError, match="after window start"):
            TimeWindow(start=REFERENCE, end=REFERENCE)

    def test_clipped_from(self):
        window = TimeWindow(start=REFERENCE, end=REFERENCE + timedelta(hours=2))

        clipped = window.clipped_from(REFERENCE + timedelta(hours=1))

        assert clipped.start == REFERENCE + timedelta(hours=1)
        assert window.clipped_from(REFERENCE + timedelta(hours=2)) is None

    def test_efficiency_bounds(self):
        assert EfficiencyFactor(factor=Decimal("0.5")).percentage == 50.0
        with pytest.raises(ValueError):
            EfficiencyFactor(factor=Decimal("3"))
