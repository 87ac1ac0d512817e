"""
Abstract Entity Store Interface

Services talk to persistence only through these two interfaces:

- EntityStoreInterface opens units of work.
- StoreSession is one open unit of work: everything done through it
  commits together when the ``async with`` block exits normally and is
  rolled back if the block raises.

Every entity query is scoped by a ``user_id`` equality filter supplied by
the caller. A row that exists but belongs to another user is reported
exactly like a row that does not exist.

The interface is intentionally small - it is not an ORM. Entity kinds are
the pydantic model classes from finnan.models.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, TypeVar

from finnan.models.entities import (
    OwnedEntity,
    Transaction,
    TransactionType,
    User,
)


E = TypeVar("E", bound=OwnedEntity)


class StoreSession(ABC):
    """
    One atomic unit of work against the store.

    Writes are immediately visible to later reads through the same session.
    """

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]:
        """Return the user with this id, or None."""
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Return the user with this email (case-insensitive), or None."""
        pass

    @abstractmethod
    async def insert_user(self, user: User) -> User:
        """
        Insert a user and return it with its assigned id.

        Raises:
            IntegrityViolationError: If the email is already registered
        """
        pass

    # -------------------------------------------------------------------------
    # Owned entities
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get(self, kind: type[E], entity_id: int, user_id: int) -> Optional[E]:
        """
        Point lookup with ownership check.

        Returns:
            The entity if it exists and belongs to user_id, None otherwise
        """
        pass

    @abstractmethod
    async def find(
        self,
        kind: type[E],
        user_id: int,
        order_by: Optional[str] = None,
        descending: bool = False,
        **filters: Any,
    ) -> list[E]:
        """
        Filtered scan of one user's entities.

        Args:
            kind: Entity model class
            user_id: Owning user
            order_by: Attribute name to sort by (defaults to id)
            descending: Sort direction
            **filters: Attribute equality filters; a list value means "in"
        """
        pass

    @abstractmethod
    async def count(self, kind: type[E], user_id: int, **filters: Any) -> int:
        """Count one user's entities matching equality filters."""
        pass

    @abstractmethod
    async def insert(self, entity: E) -> E:
        """
        Insert an entity and return it as stored.

        If entity.id is set the row keeps that id, otherwise the store
        assigns one.

        Raises:
            IntegrityViolationError: On a unique or foreign key violation
        """
        pass

    @abstractmethod
    async def update(self, kind: type[E], entity_id: int, user_id: int, **fields: Any) -> E:
        """
        Overwrite the given attributes and return the updated entity.

        updated_at is refreshed unless it is one of the given attributes.

        Raises:
            RowNotFoundError: If no such row is owned by user_id
        """
        pass

    @abstractmethod
    async def increment(
        self,
        kind: type[E],
        entity_id: int,
        user_id: int,
        field: str,
        delta: Decimal,
    ) -> None:
        """
        Atomically add delta to a numeric attribute (in-store arithmetic).

        Raises:
            RowNotFoundError: If no such row is owned by user_id
        """
        pass

    @abstractmethod
    async def delete(self, kind: type[E], entity_id: int, user_id: int) -> None:
        """
        Delete one entity.

        Raises:
            RowNotFoundError: If no such row is owned by user_id
        """
        pass

    @abstractmethod
    async def delete_all(self, kind: type[E], user_id: int) -> int:
        """Delete every entity of this kind owned by user_id; returns the count."""
        pass

    @abstractmethod
    async def update_all(
        self,
        kind: type[E],
        user_id: int,
        where: Optional[dict[str, Any]] = None,
        **fields: Any,
    ) -> int:
        """Bulk-update a user's entities matching ``where``; returns the count."""
        pass

    # -------------------------------------------------------------------------
    # Specialised queries
    # -------------------------------------------------------------------------

    @abstractmethod
    async def find_transactions(
        self,
        user_id: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        type: Optional[TransactionType] = None,
        category_id: Optional[int] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> list[Transaction]:
        """
        List transactions with optional filters.

        Args:
            date_from: Only transactions on or after this moment
            date_to: Only transactions on or before this moment
            type: Only this transaction type
            category_id: Only this category
            limit: Maximum number of results
            newest_first: Sort by date descending (else ascending)
        """
        pass

    @abstractmethod
    async def count_account_references(self, user_id: int, account_id: int) -> int:
        """Count transactions using the account as source or transfer target."""
        pass

    @abstractmethod
    async def reset_id_sequences(self) -> None:
        """
        Re-synchronise id generators after rows were inserted with explicit ids.

        A no-op for backends that derive the next id from the table.
        """
        pass


class EntityStoreInterface(ABC):
    """
    Abstract interface for the relational entity store.

    Any storage implementation (SQLite, PostgreSQL, in-memory, ...)
    must implement these methods.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """
        Connect and create the schema if needed.

        Raises:
            StoreConnectionError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreSession]:
        """
        Open a unit of work.

        Usage:
            async with store.transaction() as session:
                account = await session.get(Account, 1, user_id)
        """
        pass

    @abstractmethod
    async def dispose(self) -> None:
        """Release connections."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RowNotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class IntegrityViolationError(StorageError):
    """A unique or foreign key constraint was violated."""
    pass


class StoreConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
