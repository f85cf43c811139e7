"""Service-level exceptions shared across services."""

from __future__ import annotations

from uuid import UUID


class EntityNotFoundError(Exception):
    """Raised when a lookup by id finds nothing."""

    def __init__(self, entity: str, entity_id: UUID):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")
