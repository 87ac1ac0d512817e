"""Services package."""

from finnan.services.storage import (
    EntityStoreInterface,
    IntegrityViolationError,
    RowNotFoundError,
    SqlAlchemyEntityStore,
    StorageError,
    StoreConnectionError,
    StoreSession,
)

__all__ = [
    "EntityStoreInterface",
    "IntegrityViolationError",
    "RowNotFoundError",
    "SqlAlchemyEntityStore",
    "StorageError",
    "StoreConnectionError",
    "StoreSession",
]
