"""
Repository interfaces for production execution.

Persistence is reached only through these interfaces. The storage contract
is deliberately small: insert, read, update-with-precondition (version
checks), transactional increment-and-fetch counters, and insert-if-absent
guarded by a unique dedupe key.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Any
from uuid import UUID

from .entities import (
    Assignment,
    Material,
    Operation,
    ProductionPlan,
    Station,
    StockMovement,
    Substation,
    Worker,
)
from .value_objects.enums import MovementSubtype
from .value_objects.work_schedule import MasterSchedule


class PlanRepository(ABC):
    @abstractmethod
    def get(self, plan_id: UUID) -> ProductionPlan | None:
        """Load a plan with its nodes."""

    @abstractmethod
    def add(self, plan: ProductionPlan) -> None:
        """Insert a new plan with its nodes."""

    @abstractmethod
    def save(self, plan: ProductionPlan) -> None:
        """Persist plan and node state, draining status events to history."""


class OperationRepository(ABC):
    @abstractmethod
    def add(self, operation: Operation) -> None: ...

    @abstractmethod
    def list_all(self) -> list[Operation]: ...


class WorkerRepository(ABC):
    @abstractmethod
    def add(self, worker: Worker) -> None: ...

    @abstractmethod
    def get(self, worker_id: UUID) -> Worker | None: ...

    @abstractmethod
    def list_active(self) -> list[Worker]: ...


class StationRepository(ABC):
    @abstractmethod
    def add(self, station: Station) -> None:
        """Insert a station with its substations."""

    @abstractmethod
    def list_all(self) -> list[Station]:
        """All stations with their substations loaded."""

    @abstractmethod
    def get_substation(self, substation_id: UUID) -> Substation | None: ...

    @abstractmethod
    def save_substation(self, substation: Substation) -> None:
        """
        Version-checked update of substation state.

        Raises:
            LedgerConflictError: If the stored version moved on.
        """


class AssignmentRepository(ABC):
    @abstractmethod
    def get(self, assignment_id: UUID) -> Assignment | None: ...

    @abstractmethod
    def add(self, assignment: Assignment) -> None: ...

    @abstractmethod
    def save(self, assignment: Assignment) -> None:
        """
        Version-checked update.

        Raises:
            LedgerConflictError: If the stored version moved on.
        """

    @abstractmethod
    def list_by_plan(self, plan_id: UUID) -> list[Assignment]: ...

    @abstractmethod
    def list_open_by_worker(self, worker_id: UUID) -> list[Assignment]: ...

    @abstractmethod
    def list_open_by_substation(self, substation_id: UUID) -> list[Assignment]: ...

    @abstractmethod
    def max_sequence_for_worker(self, plan_id: UUID, worker_id: UUID) -> int:
        """Highest queue position the worker holds within the plan, 0 when none."""

    @abstractmethod
    def list_completed_with_reservations(self) -> list[Assignment]:
        """Completed assignments that hold at least one wip_reservation row."""


class MaterialRepository(ABC):
    @abstractmethod
    def add(self, material: Material) -> None: ...

    @abstractmethod
    def get_by_code(self, code: str) -> Material | None:
        """Fresh read of the stored row."""

    @abstractmethod
    def list_by_codes(self, codes: set[str]) -> dict[str, Material]: ...

    @abstractmethod
    def update_with_version(
        self, code: str, expected_version: int, stock: Decimal, wip_reserved: Decimal
    ) -> int:
        """
        Write stock figures only if the stored version still matches.

        Returns:
            The new version.

        Raises:
            LedgerConflictError: If the stored version moved on.
        """


class MovementRepository(ABC):
    @abstractmethod
    def insert_if_absent(self, movement: StockMovement) -> bool:
        """Insert unless a row with the same dedupe key exists. True when inserted."""

    @abstractmethod
    def exists(self, dedupe_key: str) -> bool: ...

    @abstractmethod
    def list_for_assignment(
        self, assignment_id: UUID, subtype: MovementSubtype | None = None
    ) -> list[StockMovement]: ...

    @abstractmethod
    def list_for_material(self, material_code: str) -> list[StockMovement]: ...


class CounterRepository(ABC):
    @abstractmethod
    def increment_and_fetch(self, key: str) -> int:
        """Atomically add one to the counter and return the new value."""

    @abstractmethod
    def current(self, key: str) -> int: ...

    @abstractmethod
    def raise_to(self, key: str, value: int) -> int:
        """Move the counter up to value if it is lower. Returns the stored value."""


class ScheduleRepository(ABC):
    @abstractmethod
    def get_master_schedule(self) -> MasterSchedule | None: ...

    @abstractmethod
    def save_master_schedule(self, schedule: MasterSchedule) -> None: ...


class StatusHistoryRepository(ABC):
    @abstractmethod
    def list_for_entity(self, entity_id: UUID) -> list[dict[str, Any]]: ...


class UnitOfWork(ABC):
    """Transactional boundary spanning all repositories."""

    plans: PlanRepository
    operations: OperationRepository
    workers: WorkerRepository
    stations: StationRepository
    assignments: AssignmentRepository
    materials: MaterialRepository
    movements: MovementRepository
    counters: CounterRepository
    schedules: ScheduleRepository
    history: StatusHistoryRepository

    @abstractmethod
    def __enter__(self) -> "UnitOfWork": ...

    @abstractmethod
    def __exit__(self, exc_type, exc_val, exc_tb) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

    @abstractmethod
    def savepoint(self) -> AbstractContextManager[None]:
        """Nested transaction; rolled back alone when the block raises."""
