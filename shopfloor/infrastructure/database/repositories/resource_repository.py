"""Master data repositories: operations, workers, stations and schedules."""

from collections import defaultdict
from datetime import datetime
from uuid import UUID

from sqlmodel import col, select

from ....domain.production.entities import Operation, Station, Substation, Worker
from ....domain.production.repositories import (
    OperationRepository,
    ScheduleRepository,
    StationRepository,
    WorkerRepository,
)
from ....domain.production.value_objects import MasterSchedule
from ..mappers import (
    master_schedule_payload,
    master_schedule_to_domain,
    operation_to_domain,
    operation_to_row,
    station_to_domain,
    station_to_row,
    substation_to_domain,
    substation_to_row,
    worker_to_domain,
    worker_to_row,
)
from ..models import (
    MasterScheduleRow,
    OperationRow,
    StationRow,
    SubstationRow,
    WorkerRow,
)
from .base import BaseRepository


class SqlOperationRepository(BaseRepository[OperationRow], OperationRepository):
    row_class = OperationRow

    def add(self, operation: Operation) -> None:
        self._insert(operation_to_row(operation))

    def list_all(self) -> list[Operation]:
        rows = self._all(select(OperationRow).order_by(col(OperationRow.name)))
        return [operation_to_domain(row) for row in rows]


class SqlWorkerRepository(BaseRepository[WorkerRow], WorkerRepository):
    row_class = WorkerRow

    def add(self, worker: Worker) -> None:
        self._insert(worker_to_row(worker))

    def get(self, worker_id: UUID) -> Worker | None:
        row = self._get_row(worker_id)
        return worker_to_domain(row) if row else None

    def list_active(self) -> list[Worker]:
        rows = self._all(
            select(WorkerRow)
            .where(col(WorkerRow.is_active).is_(True))
            .order_by(col(WorkerRow.name))
        )
        return [worker_to_domain(row) for row in rows]


class SqlStationRepository(BaseRepository[SubstationRow], StationRepository):
    row_class = SubstationRow

    def add(self, station: Station) -> None:
        self._insert(station_to_row(station))
        if station.substations:
            self._insert(*(substation_to_row(s) for s in station.substations))

    def list_all(self) -> list[Station]:
        station_rows = self._all(select(StationRow).order_by(col(StationRow.name)))
        substation_rows = self._all(
            select(SubstationRow).order_by(
                col(SubstationRow.priority), col(SubstationRow.code)
            )
        )
        by_station: dict[UUID, list[SubstationRow]] = defaultdict(list)
        for row in substation_rows:
            by_station[row.station_id].append(row)
        return [station_to_domain(row, by_station[row.id]) for row in station_rows]

    def get_substation(self, substation_id: UUID) -> Substation | None:
        row = self._get_row(substation_id)
        return substation_to_domain(row) if row else None

    def save_substation(self, substation: Substation) -> None:
        substation.version = self._versioned_update(
            SubstationRow.id == substation.id,
            substation.version,
            {
                "status": substation.status,
                "current_assignment_id": substation.current_assignment_id,
                "assigned_worker_id": substation.assigned_worker_id,
                "current_expected_end": substation.current_expected_end,
            },
            "substation",
            str(substation.id),
        )
        self._record_status_events(substation)


class SqlScheduleRepository(BaseRepository[MasterScheduleRow], ScheduleRepository):
    row_class = MasterScheduleRow

    def get_master_schedule(self) -> MasterSchedule | None:
        row = self.session.get(MasterScheduleRow, 1, populate_existing=True)
        return master_schedule_to_domain(row.payload) if row else None

    def save_master_schedule(self, schedule: MasterSchedule) -> None:
        row = self.session.get(MasterScheduleRow, 1) or MasterScheduleRow(id=1)
        row.payload = master_schedule_payload(schedule)
        row.updated_at = datetime.now()
        self.session.add(row)
        self.session.flush()
