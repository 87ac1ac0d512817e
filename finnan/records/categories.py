"""Category records."""

from finnan.errors import InvalidOperationError, storage_errors
from finnan.models.entities import Category, PlannedExpense, Transaction
from finnan.models.payloads import CategoryInput
from finnan.records.base import RecordService


class CategoryService(RecordService):
    """CRUD for categories. Names are unique per user."""

    label = "Category"

    async def list_categories(self, user_id: int) -> list[Category]:
        with storage_errors("list_categories"):
            async with self._store.transaction() as session:
                return await session.find(Category, user_id, order_by="name")

    async def create_category(self, user_id: int, payload: CategoryInput) -> Category:
        with storage_errors("create_category"):
            async with self._store.transaction() as session:
                if await session.count(Category, user_id, name=payload.name) > 0:
                    raise InvalidOperationError("Category already exists")
                category = await session.insert(
                    Category(user_id=user_id, **payload.model_dump())
                )

        self._logger.info("category_created", user_id=user_id, category_id=category.id)
        return category

    async def update_category(
        self,
        user_id: int,
        category_id: int,
        payload: CategoryInput,
    ) -> Category:
        with storage_errors("update_category"):
            async with self._store.transaction() as session:
                current = await self._owned(session, Category, category_id, user_id)
                if payload.name != current.name and await session.count(
                    Category, user_id, name=payload.name
                ) > 0:
                    raise InvalidOperationError("Category already exists")
                return await session.update(
                    Category, category_id, user_id, **payload.model_dump()
                )

    async def delete_category(self, user_id: int, category_id: int) -> None:
        """
        Delete a category nothing depends on. Its budgets go with it.

        Raises:
            NotFoundError: Not owned
            InvalidOperationError: Transactions or planned expenses use it
        """
        with storage_errors("delete_category"):
            async with self._store.transaction() as session:
                await self._owned(session, Category, category_id, user_id)

                if await session.count(Transaction, user_id, category_id=category_id) > 0:
                    raise InvalidOperationError(
                        "Cannot delete category with associated transactions"
                    )
                if await session.count(PlannedExpense, user_id, category_id=category_id) > 0:
                    raise InvalidOperationError(
                        "Cannot delete category with associated planned expenses"
                    )

                await session.delete(Category, category_id, user_id)

        self._logger.info("category_deleted", user_id=user_id, category_id=category_id)
