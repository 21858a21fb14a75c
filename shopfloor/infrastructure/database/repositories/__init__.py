from .assignment_repository import SqlAssignmentRepository
from .base import BaseRepository, DatabaseError, EntityAlreadyExistsError, RepositoryError
from .counter_repository import SqlCounterRepository
from .plan_repository import SqlPlanRepository, SqlStatusHistoryRepository
from .resource_repository import (
    SqlOperationRepository,
    SqlScheduleRepository,
    SqlStationRepository,
    SqlWorkerRepository,
)
from .stock_repository import SqlMaterialRepository, SqlMovementRepository

__all__ = [
    "BaseRepository",
    "DatabaseError",
    "EntityAlreadyExistsError",
    "RepositoryError",
    "SqlAssignmentRepository",
    "SqlCounterRepository",
    "SqlMaterialRepository",
    "SqlMovementRepository",
    "SqlOperationRepository",
    "SqlPlanRepository",
    "SqlScheduleRepository",
    "SqlStationRepository",
    "SqlStatusHistoryRepository",
    "SqlWorkerRepository",
]
