"""
Tests for CalendarProvider.

REFERENCE is Monday 2024-01-15 08:00. The standard master schedule works
Monday to Friday, 07:00-16:00.
"""

from datetime import date, datetime, time, timedelta

import pytest
from hypothesis import given, settings, strategies as st

from shopfloor.domain.production.services import CalendarProvider
from shopfloor.domain.production.value_objects import (
    Absence,
    BlockType,
    Holiday,
    MasterSchedule,
    PersonalSchedule,
    ScheduleMode,
    TimeBlock,
    WorkType,
)
from shopfloor.domain.shared.exceptions import CalendarExhaustedError
from shopfloor.tests.factories import REFERENCE, WorkerFactory

MONDAY = REFERENCE.date()
FRIDAY = MONDAY + timedelta(days=4)


def block(start: str, end: str, block_type: BlockType = BlockType.WORK) -> TimeBlock:
    return TimeBlock(
        start=time.fromisoformat(start), end=time.fromisoformat(end), block_type=block_type
    )


@pytest.fixture
def calendar() -> CalendarProvider:
    return CalendarProvider(MasterSchedule.standard(), lookahead_days=14)


class TestWindowsForDay:
    """Source precedence for one calendar day."""

    def test_company_weekday(self, calendar):
        windows = calendar.windows_for_day(WorkerFactory.create(), MONDAY)

        assert len(windows) == 1
        assert windows[0].start == datetime(2024, 1, 15, 7, 0)
        assert windows[0].end == datetime(2024, 1, 15, 16, 0)

    def test_weekend_has_no_windows(self, calendar):
        saturday = MONDAY + timedelta(days=5)

        assert calendar.windows_for_day(WorkerFactory.create(), saturday) == []

    def test_non_working_holiday(self):
        schedule = MasterSchedule.standard(holidays=[Holiday(day=MONDAY, name="Closed")])
        calendar = CalendarProvider(schedule, lookahead_days=7)

        assert calendar.windows_for_day(WorkerFactory.create(), MONDAY) == []

    def test_working_holiday_uses_its_own_hours(self):
        holiday = Holiday(
            day=MONDAY, name="Short day", is_working=True, work_blocks=[block("09:00", "12:00")]
        )
        calendar = CalendarProvider(MasterSchedule.standard(holidays=[holiday]), 7)

        windows = calendar.windows_for_day(WorkerFactory.create(), MONDAY)

        assert [(w.start.hour, w.end.hour) for w in windows] == [(9, 12)]

    def test_working_holiday_without_hours_falls_back_to_schedule(self):
        holiday = Holiday(day=MONDAY, is_working=True)
        calendar = CalendarProvider(MasterSchedule.standard(holidays=[holiday]), 7)

        windows = calendar.windows_for_day(WorkerFactory.create(), MONDAY)

        assert [(w.start.hour, w.end.hour) for w in windows] == [(7, 16)]

    def test_holiday_overrides_personal_schedule(self):
        schedule = MasterSchedule.standard(holidays=[Holiday(day=MONDAY)])
        worker = WorkerFactory.create(
            schedule=PersonalSchedule(
                mode=ScheduleMode.PERSONAL, blocks={0: [block("06:00", "10:00")]}
            )
        )

        assert CalendarProvider(schedule, 7).windows_for_day(worker, MONDAY) == []

    def test_personal_blocks_replace_company_schedule(self, calendar):
        worker = WorkerFactory.create(
            schedule=PersonalSchedule(
                mode=ScheduleMode.PERSONAL,
                blocks={0: [block("10:00", "12:00"), block("13:00", "15:00")]},
            )
        )

        windows = calendar.windows_for_day(worker, MONDAY)

        assert [(w.start.hour, w.end.hour) for w in windows] == [(10, 12), (13, 15)]
        assert calendar.windows_for_day(worker, MONDAY + timedelta(days=1)) == []

    def test_breaks_are_gaps(self):
        schedule = MasterSchedule(
            fixed_blocks={
                0: [
                    block("07:00", "11:00"),
                    block("11:00", "11:30", BlockType.BREAK),
                    block("11:30", "15:00"),
                ]
            }
        )

        windows = CalendarProvider(schedule, 7).windows_for_day(WorkerFactory.create(), MONDAY)

        assert [(w.start.time(), w.end.time()) for w in windows] == [
            (time(7, 0), time(11, 0)),
            (time(11, 30), time(15, 0)),
        ]

    def test_overlapping_blocks_are_merged(self):
        schedule = MasterSchedule(
            fixed_blocks={0: [block("07:00", "10:00"), block("09:00", "12:00")]}
        )

        windows = CalendarProvider(schedule, 7).windows_for_day(WorkerFactory.create(), MONDAY)

        assert [(w.start.hour, w.end.hour) for w in windows] == [(7, 12)]

    def test_absence_removes_day(self, calendar):
        worker = WorkerFactory.create(
            absences=[Absence(start_date=MONDAY, end_date=MONDAY + timedelta(days=1))]
        )

        assert calendar.windows_for_day(worker, MONDAY) == []
        assert calendar.windows_for_day(worker, MONDAY + timedelta(days=1)) == []
        assert len(calendar.windows_for_day(worker, MONDAY + timedelta(days=2))) == 1

    def test_absence_range_must_be_ordered(self):
        with pytest.raises(ValueError, match="must not precede"):
            Absence(start_date=FRIDAY, end_date=MONDAY)


class TestShiftLanes:
    @pytest.fixture
    def shifts(self) -> MasterSchedule:
        return MasterSchedule(
            work_type=WorkType.SHIFTS,
            shift_blocks={
                "early": {d: [block("06:00", "14:00")] for d in range(5)},
                "late": {d: [block("14:00", "22:00")] for d in range(5)},
                "night": {d: [block("22:00", "06:00")] for d in range(5)},
            },
        )

    def test_worker_follows_own_lane(self, shifts):
        worker = WorkerFactory.create(schedule=PersonalSchedule(lane="late"))

        windows = CalendarProvider(shifts, 7).windows_for_day(worker, MONDAY)

        assert [(w.start.hour, w.end.hour) for w in windows] == [(14, 22)]

    def test_worker_without_lane_follows_first_lane(self, shifts):
        windows = CalendarProvider(shifts, 7).windows_for_day(WorkerFactory.create(), MONDAY)

        assert [(w.start.hour, w.end.hour) for w in windows] == [(6, 14)]

    def test_unknown_lane_has_no_windows(self, shifts):
        worker = WorkerFactory.create(schedule=PersonalSchedule(lane="weekend"))

        assert CalendarProvider(shifts, 7).windows_for_day(worker, MONDAY) == []

    def test_night_block_rolls_over_midnight(self, shifts):
        worker = WorkerFactory.create(schedule=PersonalSchedule(lane="night"))

        windows = CalendarProvider(shifts, 7).windows_for_day(worker, MONDAY)

        assert windows[0].start == datetime(2024, 1, 15, 22, 0)
        assert windows[0].end == datetime(2024, 1, 16, 6, 0)

    def test_night_block_started_yesterday_is_still_open(self, shifts):
        worker = WorkerFactory.create(schedule=PersonalSchedule(lane="night"))
        calendar = CalendarProvider(shifts, 7)

        first = next(calendar.iter_windows(worker, datetime(2024, 1, 16, 3, 0)))

        assert first.start == datetime(2024, 1, 16, 3, 0)
        assert first.end == datetime(2024, 1, 16, 6, 0)

    def test_absence_drops_night_block_starting_that_day(self, shifts):
        worker = WorkerFactory.create(
            schedule=PersonalSchedule(lane="night"),
            absences=[Absence(start_date=MONDAY, end_date=MONDAY)],
        )

        first = next(CalendarProvider(shifts, 7).iter_windows(worker, REFERENCE))

        assert first.start == datetime(2024, 1, 16, 22, 0)


class TestAllocate:
    def test_fits_in_current_window(self, calendar):
        allocation = calendar.allocate(WorkerFactory.create(), REFERENCE, 90)

        assert allocation.start == REFERENCE
        assert allocation.end == REFERENCE + timedelta(minutes=90)
        assert not allocation.spans_multiple_windows

    def test_starts_at_next_window_when_outside_hours(self, calendar):
        allocation = calendar.allocate(WorkerFactory.create(), datetime(2024, 1, 15, 18, 0), 60)

        assert allocation.start == datetime(2024, 1, 16, 7, 0)
        assert allocation.end == datetime(2024, 1, 16, 8, 0)

    def test_spills_into_next_day_net_of_gap(self, calendar):
        allocation = calendar.allocate(WorkerFactory.create(), datetime(2024, 1, 15, 15, 0), 120)

        assert allocation.start == datetime(2024, 1, 15, 15, 0)
        assert allocation.end == datetime(2024, 1, 16, 8, 0)
        assert allocation.spans_multiple_windows
        assert sum(s.duration_minutes for s in allocation.segments) == 120

    def test_friday_work_continues_on_monday(self, calendar):
        allocation = calendar.allocate(
            WorkerFactory.create(), datetime.combine(FRIDAY, time(15, 30)), 60
        )

        assert allocation.end == datetime(2024, 1, 22, 7, 30)

    def test_zero_minutes_snaps_to_window(self, calendar):
        allocation = calendar.allocate(WorkerFactory.create(), datetime(2024, 1, 13, 12, 0), 0)

        assert allocation.start == allocation.end == datetime(2024, 1, 15, 7, 0)

    def test_exhausted_horizon(self):
        calendar = CalendarProvider(MasterSchedule.standard(), lookahead_days=2)

        with pytest.raises(CalendarExhaustedError):
            calendar.allocate(WorkerFactory.create(), REFERENCE, 60 * 40)

    def test_worker_without_any_hours(self):
        calendar = CalendarProvider(MasterSchedule(), lookahead_days=3)

        with pytest.raises(CalendarExhaustedError):
            calendar.next_window_start(WorkerFactory.create(), REFERENCE)


class TestWindowProperties:
    @given(
        offset_minutes=st.integers(min_value=0, max_value=7 * 24 * 60),
        minutes=st.integers(min_value=1, max_value=3 * 9 * 60),
    )
    @settings(max_examples=100, deadline=None)
    def test_allocation_stays_within_windows(self, offset_minutes, minutes):
        calendar = CalendarProvider(MasterSchedule.standard(), lookahead_days=30)
        worker = WorkerFactory.create()
        earliest = datetime(2024, 1, 15, 0, 0) + timedelta(minutes=offset_minutes)

        allocation = calendar.allocate(worker, earliest, minutes)

        assert allocation.start >= earliest
        assert calendar.is_within_windows(worker, allocation.start, allocation.end)
        assert sum((s.duration for s in allocation.segments), timedelta()) == timedelta(
            minutes=minutes
        )
        for segment in allocation.segments:
            day_windows = calendar.windows_for_day(worker, segment.start.date())
            assert any(w.covers(segment.start, segment.end) for w in day_windows)

    @given(st.dates(min_value=date(2024, 1, 1), max_value=date(2024, 12, 31)))
    @settings(max_examples=50, deadline=None)
    def test_windows_never_fall_on_weekends(self, day):
        calendar = CalendarProvider(MasterSchedule.standard(), lookahead_days=7)

        windows = calendar.windows_for_day(WorkerFactory.create(), day)

        assert (day.weekday() >= 5) == (windows == [])
