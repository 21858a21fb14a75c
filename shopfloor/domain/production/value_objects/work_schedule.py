"""
Work schedule value objects.

A company master schedule is either a set of fixed daily blocks or a set of
shift lanes, each with its own daily blocks. Workers either follow the
company schedule (optionally on a lane) or carry personal blocks. Weekdays
are keyed Monday=0 .. Sunday=6.
"""

from datetime import date, datetime, time, timedelta

from pydantic import Field, model_validator
from typing_extensions import Self

from ...shared.base import ValueObject
from .enums import BlockType, ScheduleMode, WorkType
from .time_window import TimeWindow

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class TimeBlock(ValueObject):
    """
    A daily block of clock time.

    A block whose end is at or before its start runs past midnight into the
    following day (night shifts).
    """

    start: time
    end: time
    block_type: BlockType = BlockType.WORK

    @property
    def is_work(self) -> bool:
        return self.block_type is BlockType.WORK

    @property
    def crosses_midnight(self) -> bool:
        return self.end <= self.start

    def on(self, day: date) -> TimeWindow:
        """Materialize the block on a calendar day."""
        start = datetime.combine(day, self.start)
        end = datetime.combine(day, self.end)
        if self.crosses_midnight:
            end += timedelta(days=1)
        return TimeWindow(start=start, end=end)


WeeklyBlocks = dict[int, list[TimeBlock]]


class Holiday(ValueObject):
    """Company holiday. Working holidays may carry explicit work hours."""

    day: date
    name: str = ""
    is_working: bool = False
    work_blocks: list[TimeBlock] = Field(default_factory=list)


class Absence(ValueObject):
    """Inclusive date range during which a worker is unavailable."""

    start_date: date
    end_date: date
    reason: str | None = None

    @model_validator(mode="after")
    def _check_range(self) -> Self:
        if self.end_date < self.start_date:
            raise ValueError("Absence end_date must not precede start_date")
        return self

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class PersonalSchedule(ValueObject):
    """Worker schedule settings."""

    mode: ScheduleMode = ScheduleMode.COMPANY
    lane: str | None = None
    blocks: WeeklyBlocks = Field(default_factory=dict)

    def blocks_for(self, weekday: int) -> list[TimeBlock]:
        return list(self.blocks.get(weekday, []))


class MasterSchedule(ValueObject):
    """Company-wide work schedule and holiday list."""

    work_type: WorkType = WorkType.FIXED
    fixed_blocks: WeeklyBlocks = Field(default_factory=dict)
    shift_blocks: dict[str, WeeklyBlocks] = Field(default_factory=dict)
    holidays: list[Holiday] = Field(default_factory=list)

    @classmethod
    def standard(
        cls,
        start: time = time(7, 0),
        end: time = time(16, 0),
        holidays: list[Holiday] | None = None,
    ) -> "MasterSchedule":
        """Monday to Friday, one work block per day."""
        block = TimeBlock(start=start, end=end)
        return cls(
            work_type=WorkType.FIXED,
            fixed_blocks={weekday: [block] for weekday in range(5)},
            holidays=holidays or [],
        )

    @property
    def lanes(self) -> list[str]:
        return sorted(self.shift_blocks)

    def blocks_for(self, weekday: int, lane: str | None = None) -> list[TimeBlock]:
        """
        Company blocks for a weekday.

        With shift scheduling a worker without a lane follows the first lane;
        an unknown lane has no blocks.
        """
        if self.work_type is WorkType.FIXED:
            return list(self.fixed_blocks.get(weekday, []))
        if lane is None:
            if not self.shift_blocks:
                return []
            lane = self.lanes[0]
        return list(self.shift_blocks.get(lane, {}).get(weekday, []))

    def holiday_on(self, day: date) -> Holiday | None:
        for holiday in self.holidays:
            if holiday.day == day:
                return holiday
        return None
