"""Debt records."""

from finnan.errors import storage_errors
from finnan.models.entities import Debt, Transaction
from finnan.models.payloads import DebtInput
from finnan.records.base import RecordService


class DebtService(RecordService):
    label = "Debt"

    async def list_debts(self, user_id: int) -> list[Debt]:
        with storage_errors("list_debts"):
            async with self._store.transaction() as session:
                return await session.find(
                    Debt, user_id, order_by="created_at", descending=True
                )

    async def create_debt(self, user_id: int, payload: DebtInput) -> Debt:
        with storage_errors("create_debt"):
            async with self._store.transaction() as session:
                debt = await session.insert(Debt(user_id=user_id, **payload.model_dump()))

        self._logger.info("debt_created", user_id=user_id, debt_id=debt.id)
        return debt

    async def update_debt(self, user_id: int, debt_id: int, payload: DebtInput) -> Debt:
        with storage_errors("update_debt"):
            async with self._store.transaction() as session:
                await self._owned(session, Debt, debt_id, user_id)
                return await session.update(Debt, debt_id, user_id, **payload.model_dump())

    async def delete_debt(self, user_id: int, debt_id: int) -> None:
        """Delete a debt; transactions that paid it keep existing, unlinked."""
        with storage_errors("delete_debt"):
            async with self._store.transaction() as session:
                await self._owned(session, Debt, debt_id, user_id)
                await session.update_all(
                    Transaction, user_id, where={"debt_id": debt_id}, debt_id=None
                )
                await session.delete(Debt, debt_id, user_id)

        self._logger.info("debt_deleted", user_id=user_id, debt_id=debt_id)
