"""
Calendar/Shift Provider

Resolves the usable working windows of one worker. For each day the
sources are consulted in order:

1. company holidays (a non-working holiday has no windows, a working
   holiday with explicit hours uses those hours),
2. the worker's personal blocks when the worker is on a personal schedule,
3. otherwise the company fixed blocks, or the shift blocks of the worker's lane,

and days inside an absence range are removed. Only work blocks count;
breaks are gaps. Windows are half-open and belong to the day they start on,
so a night block is dropped whole when its start day is an absence.

Workers are resolved independently; windows of different workers are
never merged.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ....core.config import settings
from ....core.observability import get_logger
from ...shared.exceptions import CalendarExhaustedError
from ..entities.worker import Worker
from ..value_objects.time_window import TimeWindow
from ..value_objects.work_schedule import MasterSchedule, TimeBlock

logger = get_logger(__name__)


@dataclass
class Allocation:
    """Working time booked for one piece of work."""

    start: datetime
    end: datetime
    segments: list[TimeWindow] = field(default_factory=list)

    @property
    def spans_multiple_windows(self) -> bool:
        return len(self.segments) > 1


class CalendarProvider:
    """Pure, bounded calendar lookups over a master schedule."""

    def __init__(
        self, master_schedule: MasterSchedule, lookahead_days: int | None = None
    ) -> None:
        self.master_schedule = master_schedule
        self.lookahead_days = lookahead_days or settings.CALENDAR_LOOKAHEAD_DAYS

    def _blocks_for_day(self, worker: Worker, day: date) -> list[TimeBlock]:
        holiday = self.master_schedule.holiday_on(day)
        if holiday is not None:
            if not holiday.is_working:
                return []
            if holiday.work_blocks:
                return list(holiday.work_blocks)

        weekday = day.weekday()
        if worker.uses_personal_schedule:
            return worker.schedule.blocks_for(weekday)
        return self.master_schedule.blocks_for(weekday, worker.schedule.lane)

    def windows_for_day(self, worker: Worker, day: date) -> list[TimeWindow]:
        """Work windows starting on a day, sorted, with overlaps merged."""
        if worker.is_absent_on(day):
            return []
        windows = sorted(
            (block.on(day) for block in self._blocks_for_day(worker, day) if block.is_work),
            key=lambda w: w.start,
        )
        return list(_merge(windows))

    def iter_windows(self, worker: Worker, reference: datetime) -> Iterator[TimeWindow]:
        """
        Windows ending after reference, clipped to start no earlier than it.

        Starts with the previous day so a night block running past midnight
        is not missed. Stops at the look-ahead horizon.
        """
        first_day = reference.date() - timedelta(days=1)

        def raw() -> Iterator[TimeWindow]:
            for offset in range(self.lookahead_days + 1):
                yield from self.windows_for_day(worker, first_day + timedelta(days=offset))

        for window in _merge(raw()):
            clipped = window.clipped_from(reference)
            if clipped is not None:
                yield clipped

    def next_window_start(self, worker: Worker, earliest: datetime) -> datetime:
        """
        First working instant at or after earliest.

        Raises:
            CalendarExhaustedError: If nothing opens within the horizon.
        """
        for window in self.iter_windows(worker, earliest):
            return window.start
        raise CalendarExhaustedError(worker.id, self.lookahead_days)

    def allocate(self, worker: Worker, earliest: datetime, minutes: int) -> Allocation:
        """
        Book minutes of working time starting at the first window at or
        after earliest, spilling over consecutive windows net of the gaps.

        Raises:
            CalendarExhaustedError: If the work does not fit within the horizon.
        """
        if minutes <= 0:
            start = self.next_window_start(worker, earliest)
            return Allocation(start=start, end=start)

        remaining = timedelta(minutes=minutes)
        segments: list[TimeWindow] = []
        for window in self.iter_windows(worker, earliest):
            if window.duration >= remaining:
                end = window.start + remaining
                segments.append(TimeWindow(start=window.start, end=end))
                return Allocation(start=segments[0].start, end=end, segments=segments)
            segments.append(window)
            remaining -= window.duration

        logger.info(
            "Calendar horizon exhausted",
            worker_id=str(worker.id),
            earliest=earliest.isoformat(),
            minutes=minutes,
            horizon_days=self.lookahead_days,
        )
        raise CalendarExhaustedError(worker.id, self.lookahead_days)

    def is_within_windows(self, worker: Worker, start: datetime, end: datetime) -> bool:
        """Check that start falls inside a working window and end closes one."""
        windows = list(self.iter_windows(worker, start))
        if not any(window.contains(start) for window in windows):
            return False
        return end == start or any(w.start < end <= w.end for w in windows)


def _merge(windows: Iterator[TimeWindow] | list[TimeWindow]) -> Iterator[TimeWindow]:
    """Merge overlapping or touching windows of one worker. Input must be sorted by start."""
    pending: TimeWindow | None = None
    for window in windows:
        if pending is None:
            pending = window
        elif window.start <= pending.end:
            if window.end > pending.end:
                pending = TimeWindow(start=pending.start, end=window.end)
        else:
            yield pending
            pending = window
    if pending is not None:
        yield pending
