"""Stock master and append-only movement ledger repositories."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col, select

from ....domain.production.entities import Material, StockMovement
from ....domain.production.repositories import MaterialRepository, MovementRepository
from ....domain.production.value_objects import MovementSubtype
from ..mappers import (
    material_to_domain,
    material_to_row,
    movement_to_domain,
    movement_to_row,
)
from ..models import MaterialRow, StockMovementRow
from .base import BaseRepository, DatabaseError


class SqlMaterialRepository(BaseRepository[MaterialRow], MaterialRepository):
    row_class = MaterialRow

    def add(self, material: Material) -> None:
        self._insert(material_to_row(material))

    def get_by_code(self, code: str) -> Material | None:
        rows = self._all(select(MaterialRow).where(MaterialRow.code == code))
        return material_to_domain(rows[0]) if rows else None

    def list_by_codes(self, codes: set[str]) -> dict[str, Material]:
        if not codes:
            return {}
        rows = self._all(select(MaterialRow).where(col(MaterialRow.code).in_(sorted(codes))))
        return {row.code: material_to_domain(row) for row in rows}

    def update_with_version(
        self, code: str, expected_version: int, stock: Decimal, wip_reserved: Decimal
    ) -> int:
        return self._versioned_update(
            MaterialRow.code == code,
            expected_version,
            {"stock": stock, "wip_reserved": wip_reserved},
            "material",
            code,
        )


class SqlMovementRepository(BaseRepository[StockMovementRow], MovementRepository):
    """Movements are inserted, never updated or deleted."""

    row_class = StockMovementRow

    def insert_if_absent(self, movement: StockMovement) -> bool:
        if movement.dedupe_key and self.exists(movement.dedupe_key):
            return False
        try:
            with self.session.begin_nested():
                self.session.add(movement_to_row(movement))
                self.session.flush()
        except IntegrityError:
            # Unique dedupe key taken by a concurrent writer
            return False
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during insert: {str(e)}") from e
        return True

    def exists(self, dedupe_key: str) -> bool:
        try:
            found = self.session.exec(
                select(StockMovementRow.id).where(StockMovementRow.dedupe_key == dedupe_key)
            ).first()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database error during query: {str(e)}") from e
        return found is not None

    def list_for_assignment(
        self, assignment_id: UUID, subtype: MovementSubtype | None = None
    ) -> list[StockMovement]:
        statement = select(StockMovementRow).where(
            StockMovementRow.assignment_id == assignment_id
        )
        if subtype is not None:
            statement = statement.where(StockMovementRow.subtype == subtype)
        rows = self._all(
            statement.order_by(
                col(StockMovementRow.occurred_at), col(StockMovementRow.created_at)
            )
        )
        return [movement_to_domain(row) for row in rows]

    def list_for_material(self, material_code: str) -> list[StockMovement]:
        rows = self._all(
            select(StockMovementRow)
            .where(StockMovementRow.material_code == material_code)
            .order_by(
                col(StockMovementRow.occurred_at), col(StockMovementRow.created_at)
            )
        )
        return [movement_to_domain(row) for row in rows]
