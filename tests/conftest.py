"""
Shared fixtures.

Every test gets its own in-memory SQLite store, so tests never share
state. Settings are provided through the environment before any finnan
module reads them.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret-key-for-finnan")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime
from decimal import Decimal

import pytest

from finnan.models.entities import (
    Account,
    AccountType,
    Category,
    CategoryType,
    Debt,
    DebtType,
    Goal,
    User,
)
from finnan.services.storage import SqlAlchemyEntityStore


class Seeder:
    """Inserts fixture rows directly through the store."""

    def __init__(self, store: SqlAlchemyEntityStore):
        self.store = store

    async def user(self, email: str, name: str = "Test User") -> User:
        async with self.store.transaction() as session:
            return await session.insert_user(
                User(email=email, name=name, password_hash="not-a-real-hash")
            )

    async def account(
        self,
        user_id: int,
        name: str = "BCA",
        balance: str = "0",
        type: AccountType = AccountType.BANK,
        **fields,
    ) -> Account:
        async with self.store.transaction() as session:
            return await session.insert(Account(
                user_id=user_id, name=name, type=type, balance=Decimal(balance), **fields
            ))

    async def category(
        self,
        user_id: int,
        name: str = "Food",
        type: CategoryType = CategoryType.EXPENSE,
    ) -> Category:
        async with self.store.transaction() as session:
            return await session.insert(Category(user_id=user_id, name=name, type=type))

    async def goal(
        self,
        user_id: int,
        name: str = "Emergency fund",
        target: str = "10000000",
        current: str = "0",
        **fields,
    ) -> Goal:
        async with self.store.transaction() as session:
            return await session.insert(Goal(
                user_id=user_id,
                name=name,
                target_amount=Decimal(target),
                current_amount=Decimal(current),
                **fields,
            ))

    async def debt(
        self,
        user_id: int,
        amount: str = "1000000",
        type: DebtType = DebtType.PAYABLE,
        person_name: str = "Andi",
        **fields,
    ) -> Debt:
        async with self.store.transaction() as session:
            return await session.insert(Debt(
                user_id=user_id,
                person_name=person_name,
                amount=Decimal(amount),
                type=type,
                **fields,
            ))

    async def get(self, kind, entity_id: int, user_id: int):
        async with self.store.transaction() as session:
            return await session.get(kind, entity_id, user_id)

    async def find(self, kind, user_id: int, **filters):
        async with self.store.transaction() as session:
            return await session.find(kind, user_id, **filters)


@pytest.fixture
async def store():
    store = SqlAlchemyEntityStore("sqlite://")
    await store.initialize()
    yield store
    await store.dispose()


@pytest.fixture
def seed(store) -> Seeder:
    return Seeder(store)


@pytest.fixture
async def user_id(seed) -> int:
    user = await seed.user("budi@example.com", "Budi")
    return user.id


@pytest.fixture
async def other_user_id(seed) -> int:
    user = await seed.user("sari@example.com", "Sari")
    return user.id


@pytest.fixture
def today() -> datetime:
    return datetime(2025, 3, 15, 10, 30)
