"""
Planned expense records.

Lifecycle: PLANNED -> EXECUTED (one way), PLANNED -> CANCELLED.
Executing only flips the status; it never records a transaction or
touches any balance.
"""

from typing import Any, Optional

from finnan.errors import InvalidOperationError, storage_errors
from finnan.models.entities import (
    Account,
    Category,
    PlannedExpense,
    PlannedExpenseStatus,
    PlannedExpenseView,
    Transaction,
)
from finnan.models.payloads import (
    PlannedExpenseCreate,
    PlannedExpenseFilter,
    PlannedExpenseUpdate,
)
from finnan.records.base import RecordService, month_bounds
from finnan.services.storage.interface import StoreSession


def planned_expense_view(
    planned: PlannedExpense,
    categories: dict[int, Category],
    accounts: dict[int, Account],
    transactions: dict[int, Transaction],
) -> PlannedExpenseView:
    return PlannedExpenseView(
        **planned.model_dump(),
        category=categories.get(planned.category_id),
        account=accounts.get(planned.account_id),
        transaction=transactions.get(planned.transaction_id),
    )


class PlannedExpenseService(RecordService):
    label = "Planned expense"

    async def list_planned_expenses(
        self,
        user_id: int,
        filters: Optional[PlannedExpenseFilter] = None,
    ) -> list[PlannedExpenseView]:
        """
        Ascending by date. The month window applies only when both month
        and year are given.
        """
        filters = filters or PlannedExpenseFilter()
        criteria: dict[str, Any] = {}
        if filters.status is not None:
            criteria["status"] = filters.status

        with storage_errors("list_planned_expenses"):
            async with self._store.transaction() as session:
                planned = await session.find(
                    PlannedExpense, user_id, order_by="date", **criteria
                )
                categories = {c.id: c for c in await session.find(Category, user_id)}
                accounts = {a.id: a for a in await session.find(Account, user_id)}
                linked = {p.transaction_id for p in planned if p.transaction_id}
                transactions = {
                    t.id: t for t in await session.find(Transaction, user_id)
                    if t.id in linked
                }

        if filters.month is not None and filters.year is not None:
            start, end = month_bounds(filters.month, filters.year)
            planned = [p for p in planned if start <= p.date <= end]
        return [
            planned_expense_view(p, categories, accounts, transactions) for p in planned
        ]

    async def _view(
        self, session: StoreSession, planned: PlannedExpense
    ) -> PlannedExpenseView:
        """Single-record view, loaded in the caller's unit of work."""
        category = await session.get(Category, planned.category_id, planned.user_id)
        account = transaction = None
        if planned.account_id is not None:
            account = await session.get(Account, planned.account_id, planned.user_id)
        if planned.transaction_id is not None:
            transaction = await session.get(
                Transaction, planned.transaction_id, planned.user_id
            )
        return PlannedExpenseView(
            **planned.model_dump(),
            category=category,
            account=account,
            transaction=transaction,
        )

    async def create_planned_expense(
        self,
        user_id: int,
        payload: PlannedExpenseCreate,
    ) -> PlannedExpenseView:
        with storage_errors("create_planned_expense"):
            async with self._store.transaction() as session:
                await self._referenced(
                    session, Category, payload.category_id, user_id, "categoryId"
                )
                await self._referenced(
                    session, Account, payload.account_id, user_id, "accountId"
                )
                planned = await session.insert(
                    PlannedExpense(user_id=user_id, **payload.model_dump())
                )
                view = await self._view(session, planned)

        self._logger.info(
            "planned_expense_created", user_id=user_id, planned_expense_id=planned.id
        )
        return view

    async def update_planned_expense(
        self,
        user_id: int,
        planned_id: int,
        payload: PlannedExpenseUpdate,
    ) -> PlannedExpenseView:
        """
        Patch only the fields the caller sent.

        account_id sent as null detaches the account; an absent field is
        left as it is.
        """
        with storage_errors("update_planned_expense"):
            async with self._store.transaction() as session:
                current = await self._owned(session, PlannedExpense, planned_id, user_id)

                if payload.is_present("category_id"):
                    await self._referenced(
                        session, Category, payload.category_id, user_id, "categoryId"
                    )
                if payload.is_present("account_id") and payload.account_id is not None:
                    await self._referenced(
                        session, Account, payload.account_id, user_id, "accountId"
                    )

                fields = payload.present_fields()
                if fields:
                    current = await session.update(
                        PlannedExpense, planned_id, user_id, **fields
                    )
                return await self._view(session, current)

    async def delete_planned_expense(self, user_id: int, planned_id: int) -> None:
        with storage_errors("delete_planned_expense"):
            async with self._store.transaction() as session:
                await self._owned(session, PlannedExpense, planned_id, user_id)
                await session.delete(PlannedExpense, planned_id, user_id)

    async def execute_planned_expense(
        self, user_id: int, planned_id: int
    ) -> PlannedExpenseView:
        """
        Mark a planned expense as executed.

        Raises:
            NotFoundError: Not owned
            InvalidOperationError: Already executed
        """
        with storage_errors("execute_planned_expense"):
            async with self._store.transaction() as session:
                planned = await self._owned(session, PlannedExpense, planned_id, user_id)
                if planned.status == PlannedExpenseStatus.EXECUTED:
                    raise InvalidOperationError("Planned expense already executed")
                executed = await session.update(
                    PlannedExpense, planned_id, user_id,
                    status=PlannedExpenseStatus.EXECUTED,
                )
                view = await self._view(session, executed)

        self._logger.info(
            "planned_expense_executed", user_id=user_id, planned_expense_id=planned_id
        )
        return view
