"""
Ledger Mutation Engine

Creates, deletes and lists transactions while keeping the ledger
consistent: account balances, stored goal amounts and installment debt
counters always reflect the net effect of the transactions that exist.

RULES:
- INCOME adds to the account and goal it references, EXPENSE subtracts.
- TRANSFER moves the amount from account_id to target_account_id and
  touches nothing else.
- A transaction linked to an installment debt advances its counter by
  one; reaching the total marks the debt PAID.
- Deleting a transaction applies the exact reversal of its effects.
- Every create and delete is one unit of work: it either happens
  completely or not at all.
"""

from decimal import Decimal
from typing import Optional

import structlog

from finnan.errors import (
    InvalidOperationError,
    InvalidReferenceError,
    NotFoundError,
    storage_errors,
)
from finnan.models.entities import (
    Account,
    Category,
    Debt,
    DebtStatus,
    Goal,
    Transaction,
    TransactionType,
    TransactionView,
)
from finnan.models.payloads import TransactionCreate, TransactionFilter
from finnan.services.storage.interface import EntityStoreInterface, StoreSession


def signed_amount(type: TransactionType, amount: Decimal) -> Decimal:
    """
    Effect of a transaction on its own account and goal.

    INCOME is positive, EXPENSE negative. TRANSFER has no single-account
    effect and yields zero.
    """
    if type == TransactionType.INCOME:
        return amount
    if type == TransactionType.EXPENSE:
        return -amount
    return Decimal("0")


def reversal_amount(type: TransactionType, amount: Decimal) -> Decimal:
    """The delta that undoes signed_amount(type, amount)."""
    return -signed_amount(type, amount)


def next_installment(debt: Debt) -> tuple[int, DebtStatus]:
    """Counter and status after one more payment on an installment debt."""
    current = (debt.current_installment or 0) + 1
    if current >= debt.total_installments:
        return current, DebtStatus.PAID
    return current, debt.status


def previous_installment(debt: Debt) -> tuple[int, DebtStatus]:
    """Counter and status after one payment is withdrawn."""
    current = debt.current_installment if debt.current_installment is not None else 1
    current = max(0, current - 1)
    if current < debt.total_installments:
        return current, DebtStatus.UNPAID
    return current, debt.status


def transaction_view(
    transaction: Transaction,
    categories: dict[int, Category],
    accounts: dict[int, Account],
    debts: dict[int, Debt],
) -> TransactionView:
    """Attach the category, accounts and debt a transaction references."""
    return TransactionView(
        **transaction.model_dump(),
        category=categories.get(transaction.category_id),
        account=accounts.get(transaction.account_id),
        target_account=accounts.get(transaction.target_account_id),
        debt=debts.get(transaction.debt_id),
    )


class LedgerEngine:
    """
    Applies transactions to the ledger.

    Usage:
        engine = LedgerEngine(store)
        transaction = await engine.create_transaction(user_id, payload)
        await engine.delete_transaction(user_id, transaction.id)
    """

    def __init__(self, store: EntityStoreInterface):
        self._store = store
        self._logger = structlog.get_logger()

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create_transaction(
        self,
        user_id: int,
        payload: TransactionCreate,
    ) -> Transaction:
        """
        Record a transaction and apply its side effects.

        Raises:
            InvalidReferenceError: Category, account, goal or debt not owned
            InvalidOperationError: Malformed transfer
            InternalError: Store failure (nothing is applied)
        """
        with storage_errors("create_transaction"):
            async with self._store.transaction() as session:
                category = await session.get(Category, payload.category_id, user_id)
                if category is None:
                    raise InvalidReferenceError(
                        "Invalid category",
                        {"categoryId": payload.category_id},
                    )

                if payload.type == TransactionType.TRANSFER:
                    transaction = await self._create_transfer(session, user_id, payload)
                else:
                    transaction = await self._create_flow(session, user_id, payload)

        self._logger.info(
            "transaction_created",
            user_id=user_id,
            transaction_id=transaction.id,
            type=transaction.type.value,
            amount=str(transaction.amount),
        )
        return transaction

    async def _create_transfer(
        self,
        session: StoreSession,
        user_id: int,
        payload: TransactionCreate,
    ) -> Transaction:
        if not payload.account_id or not payload.target_account_id:
            raise InvalidOperationError(
                "Source and target accounts are required for a transfer"
            )
        if payload.account_id == payload.target_account_id:
            raise InvalidOperationError("Cannot transfer to the same account")

        source = await session.get(Account, payload.account_id, user_id)
        target = await session.get(Account, payload.target_account_id, user_id)
        if source is None or target is None:
            raise InvalidReferenceError(
                "Invalid source or target account",
                {
                    "accountId": payload.account_id,
                    "targetAccountId": payload.target_account_id,
                },
            )

        await session.increment(Account, source.id, user_id, "balance", -payload.amount)
        await session.increment(Account, target.id, user_id, "balance", payload.amount)

        return await session.insert(Transaction(
            user_id=user_id,
            amount=payload.amount,
            date=payload.date,
            description=payload.description,
            type=TransactionType.TRANSFER,
            category_id=payload.category_id,
            account_id=source.id,
            target_account_id=target.id,
        ))

    async def _create_flow(
        self,
        session: StoreSession,
        user_id: int,
        payload: TransactionCreate,
    ) -> Transaction:
        """INCOME or EXPENSE: resolve every reference, then apply."""
        account: Optional[Account] = None
        goal: Optional[Goal] = None
        debt: Optional[Debt] = None

        if payload.account_id:
            account = await session.get(Account, payload.account_id, user_id)
            if account is None:
                raise InvalidReferenceError(
                    "Invalid account", {"accountId": payload.account_id}
                )
        if payload.goal_id:
            goal = await session.get(Goal, payload.goal_id, user_id)
            if goal is None:
                raise InvalidReferenceError("Invalid goal", {"goalId": payload.goal_id})
        if payload.debt_id:
            debt = await session.get(Debt, payload.debt_id, user_id)
            if debt is None:
                raise InvalidReferenceError("Invalid debt", {"debtId": payload.debt_id})

        delta = signed_amount(payload.type, payload.amount)

        if account is not None:
            await session.increment(Account, account.id, user_id, "balance", delta)
        if goal is not None:
            await session.increment(Goal, goal.id, user_id, "current_amount", delta)
        if debt is not None and debt.is_installment:
            current, status = next_installment(debt)
            await session.update(
                Debt, debt.id, user_id,
                current_installment=current,
                status=status,
            )

        return await session.insert(Transaction(
            user_id=user_id,
            amount=payload.amount,
            date=payload.date,
            description=payload.description,
            type=payload.type,
            category_id=payload.category_id,
            account_id=account.id if account else None,
            goal_id=goal.id if goal else None,
            debt_id=debt.id if debt else None,
        ))

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    async def delete_transaction(self, user_id: int, transaction_id: int) -> None:
        """
        Delete a transaction and reverse its side effects.

        Raises:
            NotFoundError: If the transaction does not exist or is not owned
            InternalError: Store failure (nothing is reversed)
        """
        with storage_errors("delete_transaction"):
            async with self._store.transaction() as session:
                transaction = await session.get(Transaction, transaction_id, user_id)
                if transaction is None:
                    raise NotFoundError("Transaction not found")

                if (
                    transaction.type == TransactionType.TRANSFER
                    and transaction.account_id
                    and transaction.target_account_id
                ):
                    await self._reverse_transfer(session, user_id, transaction)
                    event = "transfer_reversed"
                else:
                    await self._reverse_flow(session, user_id, transaction)
                    event = "transaction_reversed"

                await session.delete(Transaction, transaction.id, user_id)

        self._logger.info(
            event,
            user_id=user_id,
            transaction_id=transaction_id,
            amount=str(transaction.amount),
        )

    async def _reverse_transfer(
        self,
        session: StoreSession,
        user_id: int,
        transaction: Transaction,
    ) -> None:
        await session.increment(
            Account, transaction.account_id, user_id, "balance", transaction.amount
        )
        await session.increment(
            Account, transaction.target_account_id, user_id, "balance", -transaction.amount
        )

    async def _reverse_flow(
        self,
        session: StoreSession,
        user_id: int,
        transaction: Transaction,
    ) -> None:
        delta = reversal_amount(transaction.type, transaction.amount)

        if transaction.account_id:
            await session.increment(
                Account, transaction.account_id, user_id, "balance", delta
            )
        if transaction.goal_id:
            await session.increment(
                Goal, transaction.goal_id, user_id, "current_amount", delta
            )
        if transaction.debt_id:
            debt = await session.get(Debt, transaction.debt_id, user_id)
            if debt is not None and debt.is_installment:
                current, status = previous_installment(debt)
                await session.update(
                    Debt, debt.id, user_id,
                    current_installment=current,
                    status=status,
                )

    # -------------------------------------------------------------------------
    # List
    # -------------------------------------------------------------------------

    async def list_transactions(
        self,
        user_id: int,
        filters: Optional[TransactionFilter] = None,
    ) -> list[TransactionView]:
        """
        List a user's transactions, newest first, with their related records.

        The date range is applied only when both start_date and end_date
        are given; both ends are inclusive.
        """
        filters = filters or TransactionFilter()
        date_from = date_to = None
        if filters.start_date is not None and filters.end_date is not None:
            date_from, date_to = filters.start_date, filters.end_date

        with storage_errors("list_transactions"):
            async with self._store.transaction() as session:
                transactions = await session.find_transactions(
                    user_id,
                    date_from=date_from,
                    date_to=date_to,
                    type=filters.type,
                    category_id=filters.category_id,
                )
                categories = {c.id: c for c in await session.find(Category, user_id)}
                accounts = {a.id: a for a in await session.find(Account, user_id)}
                debts = {d.id: d for d in await session.find(Debt, user_id)}
        return [
            transaction_view(t, categories, accounts, debts) for t in transactions
        ]
