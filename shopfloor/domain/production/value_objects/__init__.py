from .common import EfficiencyFactor, MaterialRequirement, StationPriority
from .enums import (
    AssignmentStatus,
    BlockType,
    MovementSubtype,
    NodeStatus,
    PlanStatus,
    ScheduleMode,
    ScrapType,
    StationPolicy,
    SubstationStatus,
    WorkType,
)
from .time_window import TimeWindow
from .work_schedule import (
    WEEKDAY_NAMES,
    Absence,
    Holiday,
    MasterSchedule,
    PersonalSchedule,
    TimeBlock,
)

__all__ = [
    "Absence",
    "AssignmentStatus",
    "BlockType",
    "EfficiencyFactor",
    "Holiday",
    "MasterSchedule",
    "MaterialRequirement",
    "MovementSubtype",
    "NodeStatus",
    "PersonalSchedule",
    "PlanStatus",
    "ScheduleMode",
    "ScrapType",
    "StationPolicy",
    "StationPriority",
    "SubstationStatus",
    "TimeBlock",
    "TimeWindow",
    "WEEKDAY_NAMES",
    "WorkType",
]
