"""
Storage Services Package

Provides the abstract entity store interface and its SQLAlchemy
implementation. Services depend only on the interface.
"""

from finnan.services.storage.interface import (
    EntityStoreInterface,
    IntegrityViolationError,
    RowNotFoundError,
    StorageError,
    StoreConnectionError,
    StoreSession,
)
from finnan.services.storage.sqlalchemy_store import (
    SqlAlchemyEntityStore,
    SqlAlchemyStoreSession,
)

__all__ = [
    # Interfaces
    "EntityStoreInterface",
    "StoreSession",
    # Exceptions
    "IntegrityViolationError",
    "RowNotFoundError",
    "StorageError",
    "StoreConnectionError",
    # SQLAlchemy implementation
    "SqlAlchemyEntityStore",
    "SqlAlchemyStoreSession",
]
