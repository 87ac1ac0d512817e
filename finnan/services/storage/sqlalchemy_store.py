"""
SQLAlchemy Entity Store Implementation

Works with any SQLAlchemy URL. SQLite (the default) gets foreign key
enforcement switched on for every connection; an in-memory SQLite URL
shares one connection so every unit of work sees the same database.

Session methods are ``async def`` over a blocking SQLAlchemy Session,
the same way the rest of the services wrap their client libraries.
"""

import functools
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import structlog
from sqlalchemy import create_engine, delete, event, func, or_, select, text, update
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from finnan.config import DatabaseSettings
from finnan.models.entities import (
    Account,
    Budget,
    Category,
    Debt,
    Goal,
    OwnedEntity,
    PlannedExpense,
    Transaction,
    TransactionType,
    User,
)
from finnan.services.storage.interface import (
    E,
    EntityStoreInterface,
    IntegrityViolationError,
    RowNotFoundError,
    StorageError,
    StoreConnectionError,
    StoreSession,
)
from finnan.services.storage.tables import (
    AccountRow,
    Base,
    BudgetRow,
    CategoryRow,
    DebtRow,
    GoalRow,
    PlannedExpenseRow,
    TransactionRow,
    UserRow,
    utcnow,
)


ROW_TYPES: dict[type[OwnedEntity], type[Base]] = {
    Account: AccountRow,
    Category: CategoryRow,
    Transaction: TransactionRow,
    Budget: BudgetRow,
    Goal: GoalRow,
    Debt: DebtRow,
    PlannedExpense: PlannedExpenseRow,
}

# Tables whose ids can be supplied explicitly (backup restore)
SEQUENCED_TABLES = [row.__tablename__ for row in ROW_TYPES.values()] + [UserRow.__tablename__]


def _row_type(kind: type[OwnedEntity]) -> type[Base]:
    """Map an entity model (or a subclass of one) to its table."""
    for base in kind.__mro__:
        if base in ROW_TYPES:
            return ROW_TYPES[base]
    raise StorageError(f"No table for entity type {kind.__name__}")


def _base_kind(kind: type[OwnedEntity]) -> type[OwnedEntity]:
    for base in kind.__mro__:
        if base in ROW_TYPES:
            return base
    raise StorageError(f"No table for entity type {kind.__name__}")


def _column_names(row_type: type[Base]) -> list[str]:
    return [column.key for column in row_type.__table__.columns]


def _db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _row_to_dict(row: Base) -> dict[str, Any]:
    return {name: getattr(row, name) for name in _column_names(type(row))}


def _translate_errors(method):
    """Re-raise SQLAlchemy failures as StorageError subclasses."""

    @functools.wraps(method)
    async def wrapper(*args, **kwargs):
        try:
            return await method(*args, **kwargs)
        except IntegrityError as e:
            raise IntegrityViolationError(str(e.orig)) from e
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e

    return wrapper


class SqlAlchemyStoreSession(StoreSession):
    """One unit of work bound to a SQLAlchemy Session."""

    def __init__(self, session: Session):
        self._session = session

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _to_model(self, kind: type[E], row: Base) -> E:
        return _base_kind(kind).model_validate(_row_to_dict(row))

    def _select_owned(self, row_type: type[Base], user_id: int):
        return (
            select(row_type)
            .where(row_type.user_id == user_id)
            .execution_options(populate_existing=True)
        )

    def _apply_filters(self, statement, row_type: type[Base], filters: dict[str, Any]):
        for name, value in filters.items():
            column = getattr(row_type, name)
            if isinstance(value, (list, tuple, set)):
                statement = statement.where(column.in_([_db_value(v) for v in value]))
            else:
                statement = statement.where(column == _db_value(value))
        return statement

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @_translate_errors
    async def get_user(self, user_id: int) -> Optional[User]:
        row = self._session.get(UserRow, user_id, populate_existing=True)
        return User.model_validate(_row_to_dict(row)) if row else None

    @_translate_errors
    async def get_user_by_email(self, email: str) -> Optional[User]:
        row = self._session.execute(
            select(UserRow).where(func.lower(UserRow.email) == email.strip().lower())
        ).scalar_one_or_none()
        return User.model_validate(_row_to_dict(row)) if row else None

    @_translate_errors
    async def insert_user(self, user: User) -> User:
        values = {
            name: _db_value(value)
            for name, value in user.model_dump().items()
            if name in _column_names(UserRow)
            and not (name in ("id", "created_at", "updated_at") and value is None)
        }
        row = UserRow(**values)
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return User.model_validate(_row_to_dict(row))

    # -------------------------------------------------------------------------
    # Owned entities
    # -------------------------------------------------------------------------

    @_translate_errors
    async def get(self, kind: type[E], entity_id: int, user_id: int) -> Optional[E]:
        row_type = _row_type(kind)
        row = self._session.execute(
            self._select_owned(row_type, user_id).where(row_type.id == entity_id)
        ).scalar_one_or_none()
        return self._to_model(kind, row) if row else None

    @_translate_errors
    async def find(
        self,
        kind: type[E],
        user_id: int,
        order_by: Optional[str] = None,
        descending: bool = False,
        **filters: Any,
    ) -> list[E]:
        row_type = _row_type(kind)
        statement = self._apply_filters(self._select_owned(row_type, user_id), row_type, filters)
        column = getattr(row_type, order_by or "id")
        if descending:
            statement = statement.order_by(column.desc(), row_type.id.desc())
        else:
            statement = statement.order_by(column.asc(), row_type.id.asc())
        rows = self._session.execute(statement).scalars().all()
        return [self._to_model(kind, row) for row in rows]

    @_translate_errors
    async def count(self, kind: type[E], user_id: int, **filters: Any) -> int:
        row_type = _row_type(kind)
        statement = select(func.count()).select_from(row_type).where(row_type.user_id == user_id)
        statement = self._apply_filters(statement, row_type, filters)
        return self._session.execute(statement).scalar_one()

    @_translate_errors
    async def insert(self, entity: E) -> E:
        row_type = _row_type(type(entity))
        columns = _column_names(row_type)
        values = {
            name: _db_value(value)
            for name, value in entity.model_dump().items()
            if name in columns
            and not (name in ("id", "created_at", "updated_at") and value is None)
        }
        row = row_type(**values)
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return self._to_model(type(entity), row)

    @_translate_errors
    async def update(self, kind: type[E], entity_id: int, user_id: int, **fields: Any) -> E:
        row_type = _row_type(kind)
        values = {name: _db_value(value) for name, value in fields.items()}
        values.setdefault("updated_at", utcnow())
        result = self._session.execute(
            update(row_type)
            .where(row_type.id == entity_id, row_type.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise RowNotFoundError(f"{kind.__name__} {entity_id} not found")
        return await self.get(kind, entity_id, user_id)

    @_translate_errors
    async def increment(
        self,
        kind: type[E],
        entity_id: int,
        user_id: int,
        field: str,
        delta: Decimal,
    ) -> None:
        row_type = _row_type(kind)
        column = getattr(row_type, field)
        result = self._session.execute(
            update(row_type)
            .where(row_type.id == entity_id, row_type.user_id == user_id)
            .values({column: column + delta, row_type.updated_at: utcnow()})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise RowNotFoundError(f"{kind.__name__} {entity_id} not found")

    @_translate_errors
    async def delete(self, kind: type[E], entity_id: int, user_id: int) -> None:
        row_type = _row_type(kind)
        result = self._session.execute(
            delete(row_type)
            .where(row_type.id == entity_id, row_type.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise RowNotFoundError(f"{kind.__name__} {entity_id} not found")

    @_translate_errors
    async def delete_all(self, kind: type[E], user_id: int) -> int:
        row_type = _row_type(kind)
        result = self._session.execute(
            delete(row_type)
            .where(row_type.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @_translate_errors
    async def update_all(
        self,
        kind: type[E],
        user_id: int,
        where: Optional[dict[str, Any]] = None,
        **fields: Any,
    ) -> int:
        row_type = _row_type(kind)
        statement = update(row_type).where(row_type.user_id == user_id)
        statement = self._apply_filters(statement, row_type, where or {})
        values = {name: _db_value(value) for name, value in fields.items()}
        values.setdefault("updated_at", utcnow())
        result = self._session.execute(
            statement.values(**values).execution_options(synchronize_session=False)
        )
        return result.rowcount

    # -------------------------------------------------------------------------
    # Specialised queries
    # -------------------------------------------------------------------------

    @_translate_errors
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
        statement = self._select_owned(TransactionRow, user_id)
        if date_from is not None:
            statement = statement.where(TransactionRow.date >= date_from)
        if date_to is not None:
            statement = statement.where(TransactionRow.date <= date_to)
        if type is not None:
            statement = statement.where(TransactionRow.type == _db_value(type))
        if category_id is not None:
            statement = statement.where(TransactionRow.category_id == category_id)

        if newest_first:
            statement = statement.order_by(TransactionRow.date.desc(), TransactionRow.id.desc())
        else:
            statement = statement.order_by(TransactionRow.date.asc(), TransactionRow.id.asc())
        if limit is not None:
            statement = statement.limit(limit)

        rows = self._session.execute(statement).scalars().all()
        return [self._to_model(Transaction, row) for row in rows]

    @_translate_errors
    async def count_account_references(self, user_id: int, account_id: int) -> int:
        statement = (
            select(func.count())
            .select_from(TransactionRow)
            .where(
                TransactionRow.user_id == user_id,
                or_(
                    TransactionRow.account_id == account_id,
                    TransactionRow.target_account_id == account_id,
                ),
            )
        )
        return self._session.execute(statement).scalar_one()

    @_translate_errors
    async def reset_id_sequences(self) -> None:
        if self._session.get_bind().dialect.name != "postgresql":
            return
        for table in SEQUENCED_TABLES:
            self._session.execute(
                text(
                    f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
                    f"COALESCE(MAX(id), 1), MAX(id) IS NOT NULL) FROM {table}"
                )
            )


class SqlAlchemyEntityStore(EntityStoreInterface):
    """
    Relational entity store backed by SQLAlchemy.

    Usage:
        store = SqlAlchemyEntityStore("sqlite://")
        await store.initialize()
        async with store.transaction() as session:
            ...
    """

    def __init__(
        self,
        url: Optional[str] = None,
        settings: Optional[DatabaseSettings] = None,
    ):
        self._settings = settings or DatabaseSettings()
        self._url = url or self._settings.url
        self._engine = self._create_engine(self._url)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._logger = structlog.get_logger()

    def _create_engine(self, url: str) -> Engine:
        parsed = make_url(url)
        kwargs: dict[str, Any] = {"echo": self._settings.echo}

        if parsed.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if parsed.database in (None, "", ":memory:"):
                kwargs["poolclass"] = StaticPool
            else:
                Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(url, **kwargs)

        if parsed.get_backend_name() == "sqlite":
            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return engine

    async def initialize(self) -> None:
        """Create tables, retrying transient connection failures."""
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self._settings.connect_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(OperationalError),
                reraise=True,
            ):
                with attempt:
                    Base.metadata.create_all(self._engine)
        except OperationalError as e:
            raise StoreConnectionError(f"Failed to connect to database: {e}") from e

        self._logger.info(
            "store_initialized",
            backend=self._engine.dialect.name,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        session = self._session_factory()
        try:
            yield SqlAlchemyStoreSession(session)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise IntegrityViolationError(str(e.orig)) from e
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(str(e)) from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    async def dispose(self) -> None:
        self._engine.dispose()
