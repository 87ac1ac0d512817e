"""Account records."""

from finnan.errors import InvalidOperationError, storage_errors
from finnan.models.entities import Account, Goal, PlannedExpense
from finnan.models.payloads import AccountInput
from finnan.records.base import RecordService


class AccountService(RecordService):
    """
    CRUD for accounts.

    Balances are edited freely here; only the ledger engine moves them in
    response to transactions. An account referenced by any transaction
    (as source or transfer target) cannot be deleted.
    """

    label = "Account"

    async def list_accounts(self, user_id: int) -> list[Account]:
        with storage_errors("list_accounts"):
            async with self._store.transaction() as session:
                return await session.find(
                    Account, user_id, order_by="created_at", descending=True
                )

    async def create_account(self, user_id: int, payload: AccountInput) -> Account:
        with storage_errors("create_account"):
            async with self._store.transaction() as session:
                await self._referenced(session, Goal, payload.goal_id, user_id, "goalId")
                account = await session.insert(
                    Account(user_id=user_id, **payload.model_dump())
                )

        self._logger.info("account_created", user_id=user_id, account_id=account.id)
        return account

    async def update_account(
        self,
        user_id: int,
        account_id: int,
        payload: AccountInput,
    ) -> Account:
        """Replace every editable field of the account."""
        with storage_errors("update_account"):
            async with self._store.transaction() as session:
                await self._owned(session, Account, account_id, user_id)
                await self._referenced(session, Goal, payload.goal_id, user_id, "goalId")
                return await session.update(
                    Account, account_id, user_id, **payload.model_dump()
                )

    async def delete_account(self, user_id: int, account_id: int) -> None:
        """
        Delete an unreferenced account.

        Planned expenses and goals pointing at it are detached.

        Raises:
            NotFoundError: Not owned
            InvalidOperationError: Transactions still reference the account
        """
        with storage_errors("delete_account"):
            async with self._store.transaction() as session:
                await self._owned(session, Account, account_id, user_id)

                if await session.count_account_references(user_id, account_id) > 0:
                    raise InvalidOperationError(
                        "Cannot delete account with associated transactions"
                    )

                await session.update_all(
                    PlannedExpense, user_id, where={"account_id": account_id}, account_id=None
                )
                await session.update_all(
                    Goal, user_id, where={"account_id": account_id}, account_id=None
                )
                await session.delete(Account, account_id, user_id)

        self._logger.info("account_deleted", user_id=user_id, account_id=account_id)
