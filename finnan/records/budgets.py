"""
Budget records.

A budget caps EXPENSE spending for one category in one calendar month.
Listing enriches each budget with what was actually spent and its category.
"""

from decimal import Decimal
from typing import Optional

from finnan.errors import InvalidOperationError, storage_errors
from finnan.models.entities import Budget, BudgetProgress, Category, TransactionType
from finnan.models.payloads import BudgetCreate, BudgetFilter
from finnan.records.base import RecordService, month_bounds


def budget_progress(
    budget: Budget,
    spent: Decimal,
    category: Optional[Category] = None,
) -> BudgetProgress:
    percentage = min(float(spent / budget.amount * 100), 100.0)
    return BudgetProgress(
        **budget.model_dump(),
        spent=spent,
        remaining=budget.amount - spent,
        percentage=max(percentage, 0.0),
        category=category,
    )


class BudgetService(RecordService):
    label = "Budget"

    async def list_budgets(
        self,
        user_id: int,
        filters: Optional[BudgetFilter] = None,
    ) -> list[BudgetProgress]:
        filters = filters or BudgetFilter()
        criteria = {}
        if filters.month is not None:
            criteria["month"] = filters.month
        if filters.year is not None:
            criteria["year"] = filters.year

        with storage_errors("list_budgets"):
            async with self._store.transaction() as session:
                budgets = await session.find(Budget, user_id, **criteria)
                categories = {c.id: c for c in await session.find(Category, user_id)}
                progress = []
                for budget in budgets:
                    start, end = month_bounds(budget.month, budget.year)
                    expenses = await session.find_transactions(
                        user_id,
                        date_from=start,
                        date_to=end,
                        type=TransactionType.EXPENSE,
                        category_id=budget.category_id,
                    )
                    spent = sum((t.amount for t in expenses), Decimal("0"))
                    progress.append(
                        budget_progress(budget, spent, categories.get(budget.category_id))
                    )
                return progress

    async def create_budget(self, user_id: int, payload: BudgetCreate) -> Budget:
        """
        Raises:
            InvalidReferenceError: Category not owned
            InvalidOperationError: A budget already covers this category and month
        """
        with storage_errors("create_budget"):
            async with self._store.transaction() as session:
                await self._referenced(
                    session, Category, payload.category_id, user_id, "categoryId"
                )
                existing = await session.count(
                    Budget,
                    user_id,
                    category_id=payload.category_id,
                    month=payload.month,
                    year=payload.year,
                )
                if existing > 0:
                    raise InvalidOperationError(
                        "Budget already exists for this category in this period"
                    )
                budget = await session.insert(Budget(user_id=user_id, **payload.model_dump()))

        self._logger.info("budget_created", user_id=user_id, budget_id=budget.id)
        return budget

    async def delete_budget(self, user_id: int, budget_id: int) -> None:
        with storage_errors("delete_budget"):
            async with self._store.transaction() as session:
                await self._owned(session, Budget, budget_id, user_id)
                await session.delete(Budget, budget_id, user_id)
