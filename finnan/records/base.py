"""Shared helpers for the record services."""

from datetime import datetime, timedelta
from typing import Optional

import structlog

from finnan.errors import InvalidReferenceError, NotFoundError
from finnan.services.storage.interface import E, EntityStoreInterface, StoreSession


def month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    """
    First and last instant of a calendar month.

    Returned as an inclusive pair for the store's date range filters.
    """
    start = datetime(year, month, 1)
    if month == 12:
        following = datetime(year + 1, 1, 1)
    else:
        following = datetime(year, month + 1, 1)
    return start, following - timedelta(microseconds=1)


class RecordService:
    """Base for ownership-checked CRUD over one kind of record."""

    label = "Record"

    def __init__(self, store: EntityStoreInterface):
        self._store = store
        self._logger = structlog.get_logger()

    async def _owned(
        self,
        session: StoreSession,
        kind: type[E],
        entity_id: int,
        user_id: int,
    ) -> E:
        """Fetch an entity the user owns, or raise NotFoundError."""
        entity = await session.get(kind, entity_id, user_id)
        if entity is None:
            raise NotFoundError(f"{self.label} not found")
        return entity

    async def _referenced(
        self,
        session: StoreSession,
        kind: type[E],
        entity_id: Optional[int],
        user_id: int,
        field: str,
    ) -> Optional[E]:
        """Resolve an optional foreign reference, or raise InvalidReferenceError."""
        if entity_id is None:
            return None
        entity = await session.get(kind, entity_id, user_id)
        if entity is None:
            raise InvalidReferenceError(
                f"Invalid {kind.__name__.lower()}", {field: entity_id}
            )
        return entity
