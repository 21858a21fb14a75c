"""Worker entity for shop-floor personnel."""

from datetime import date
from uuid import UUID

from pydantic import Field

from ...shared.base import Entity
from ..value_objects.common import EfficiencyFactor, StationPriority
from ..value_objects.enums import ScheduleMode
from ..value_objects.work_schedule import Absence, PersonalSchedule


class Worker(Entity):
    """
    Shop-floor worker.

    Eligibility for a plan node is decided by qualified operations, skills
    and station assignments. Availability comes from the company schedule
    or the worker's personal blocks, minus absences.
    """

    name: str = Field(min_length=1, max_length=100)
    is_active: bool = True
    skills: set[str] = Field(default_factory=set)
    qualified_operations: set[UUID] = Field(default_factory=set)
    stations: list[StationPriority] = Field(default_factory=list)
    absences: list[Absence] = Field(default_factory=list)
    schedule: PersonalSchedule = Field(default_factory=PersonalSchedule)
    efficiency: EfficiencyFactor | None = None

    def is_qualified_for(self, operation_id: UUID) -> bool:
        return operation_id in self.qualified_operations

    def has_skills(self, required: set[str]) -> bool:
        return required <= self.skills

    def station_priority(self, station_id: UUID) -> int | None:
        """Priority of the worker's link to a station, None when not assigned."""
        for link in self.stations:
            if link.station_id == station_id:
                return link.priority
        return None

    def is_absent_on(self, day: date) -> bool:
        return any(absence.covers(day) for absence in self.absences)

    @property
    def uses_personal_schedule(self) -> bool:
        return self.schedule.mode is ScheduleMode.PERSONAL
