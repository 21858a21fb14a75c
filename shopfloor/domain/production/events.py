"""Domain events for production execution."""

from uuid import UUID

from ..shared.base import DomainEvent


class StatusChanged(DomainEvent):
    """
    Raised on every lifecycle transition of a plan, node, assignment or
    substation. Persisted as an append-only status history row.
    """

    entity_type: str
    entity_id: UUID
    from_status: str | None
    to_status: str
    reason: str | None = None
