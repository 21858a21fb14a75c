"""
Time Window Value Object

Half-open interval [start, end) of wall-clock time. Used for materialized
working windows and for estimated assignment slots.
"""

from datetime import datetime, timedelta

from pydantic import model_validator
from typing_extensions import Self

from ...shared.base import ValueObject


class TimeWindow(ValueObject):
    """A non-empty, half-open interval between two instants."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> Self:
        if self.end <= self.start:
            raise ValueError("Window end must be after window start")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60

    def contains(self, instant: datetime) -> bool:
        """Check if the instant falls inside the window (end excluded)."""
        return self.start <= instant < self.end

    def covers(self, start: datetime, end: datetime) -> bool:
        """Check if [start, end) lies entirely inside the window."""
        return self.start <= start and end <= self.end

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def clipped_from(self, instant: datetime) -> "TimeWindow | None":
        """The part of the window at or after instant, or None when nothing remains."""
        if instant >= self.end:
            return None
        if instant <= self.start:
            return self
        return TimeWindow(start=instant, end=self.end)

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"
