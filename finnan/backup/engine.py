"""
Backup / Restore Engine

Export writes the user's whole entity graph into one versioned snapshot.
Restore replaces the user's graph with the snapshot's inside a single
unit of work:

1. Delete transactions, budgets and debts; clear account -> goal links;
   delete goals, accounts, planned expenses and categories.
2. Insert categories, accounts (without goal links), goals, then re-link
   accounts to goals, then debts, budgets, transactions and planned
   expenses.

Records keep their snapshot ids and timestamps and are re-parented to
the restoring user. A snapshot whose references do not resolve inside
itself is rejected before anything is touched.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from finnan.errors import InvalidOperationError, NotFoundError, storage_errors
from finnan.models.backup import BACKUP_VERSION, BackupData, BackupSnapshot, SnapshotGoal
from finnan.models.entities import (
    Account,
    Budget,
    Category,
    Debt,
    Goal,
    PlannedExpense,
    Transaction,
)
from finnan.services.storage.interface import (
    EntityStoreInterface,
    IntegrityViolationError,
    StoreSession,
)
from finnan.validation.coercion import to_naive_utc


INVALID_FORMAT = "Invalid backup format"

# Snapshot sections holding entity records, by wire key
RECORD_SECTIONS = (
    "accounts",
    "categories",
    "transactions",
    "budgets",
    "goals",
    "debts",
    "plannedExpenses",
)

TIMESTAMP_FIELDS = ("createdAt", "updatedAt", "date", "deadline", "dueDate")


def _prepare_record(record: Any, user_id: int) -> Any:
    """Re-parent one raw record and normalise its timestamps."""
    if not isinstance(record, dict):
        return record
    prepared = {
        key: value
        for key, value in record.items()
        if key not in ("userId", "user_id", "linkedAccounts", "linked_accounts")
    }
    prepared["userId"] = user_id
    for field in TIMESTAMP_FIELDS:
        if prepared.get(field) is not None:
            prepared[field] = to_naive_utc(prepared[field])
    return prepared


def parse_snapshot(raw: Any, user_id: int) -> BackupData:
    """
    Check the snapshot shape and build typed, re-parented records.

    Raises:
        InvalidOperationError: Missing version or data, unsupported
            version, or malformed records
    """
    if not isinstance(raw, dict) or not raw.get("version") or not isinstance(raw.get("data"), dict):
        raise InvalidOperationError(INVALID_FORMAT)

    try:
        version = int(raw["version"])
    except (TypeError, ValueError):
        raise InvalidOperationError(INVALID_FORMAT) from None
    if version > BACKUP_VERSION:
        raise InvalidOperationError(
            "Unsupported backup version",
            {"version": version, "supported": BACKUP_VERSION},
        )

    data = raw["data"]
    sections: dict[str, Any] = {}
    for key in RECORD_SECTIONS:
        records = data.get(key) or []
        if not isinstance(records, list):
            raise InvalidOperationError(INVALID_FORMAT, {"section": key})
        sections[key] = [_prepare_record(record, user_id) for record in records]

    try:
        return BackupData.model_validate(sections)
    except PydanticValidationError as e:
        issues = [
            {"field": ".".join(str(p) for p in item["loc"]), "message": item["msg"]}
            for item in e.errors(include_url=False, include_input=False)
        ]
        raise InvalidOperationError(INVALID_FORMAT, {"issues": issues}) from e


def unresolved_references(data: BackupData) -> list[str]:
    """Every reference in the snapshot that points outside it."""
    accounts = {a.id for a in data.accounts}
    categories = {c.id for c in data.categories}
    transactions = {t.id for t in data.transactions}
    goals = {g.id for g in data.goals}
    debts = {d.id for d in data.debts}

    problems = []

    def check(label: str, value: Any, known: set) -> None:
        if value is not None and value not in known:
            problems.append(f"{label}={value}")

    for record_type, records in (
        ("account", data.accounts),
        ("category", data.categories),
        ("transaction", data.transactions),
        ("budget", data.budgets),
        ("goal", data.goals),
        ("debt", data.debts),
        ("plannedExpense", data.planned_expenses),
    ):
        for record in records:
            if record.id is None:
                problems.append(f"{record_type} without id")

    for account in data.accounts:
        check(f"account[{account.id}].goalId", account.goal_id, goals)
    for goal in data.goals:
        check(f"goal[{goal.id}].accountId", goal.account_id, accounts)
    for budget in data.budgets:
        check(f"budget[{budget.id}].categoryId", budget.category_id, categories)
    for t in data.transactions:
        check(f"transaction[{t.id}].categoryId", t.category_id, categories)
        check(f"transaction[{t.id}].accountId", t.account_id, accounts)
        check(f"transaction[{t.id}].targetAccountId", t.target_account_id, accounts)
        check(f"transaction[{t.id}].goalId", t.goal_id, goals)
        check(f"transaction[{t.id}].debtId", t.debt_id, debts)
    for p in data.planned_expenses:
        check(f"plannedExpense[{p.id}].categoryId", p.category_id, categories)
        check(f"plannedExpense[{p.id}].accountId", p.account_id, accounts)
        check(f"plannedExpense[{p.id}].transactionId", p.transaction_id, transactions)

    return problems


class BackupEngine:
    """
    Export and restore of one user's entity graph.

    Usage:
        engine = BackupEngine(store)
        snapshot = await engine.export_data(user_id)
        await engine.restore_data(user_id, snapshot.model_dump(mode="json", by_alias=True))
    """

    def __init__(self, store: EntityStoreInterface):
        self._store = store
        self._logger = structlog.get_logger()

    async def export_data(self, user_id: int) -> BackupSnapshot:
        """Build a snapshot of everything the user owns (never the password)."""
        with storage_errors("export_data"):
            async with self._store.transaction() as session:
                user = await session.get_user(user_id)
                if user is None:
                    raise NotFoundError("User not found")

                accounts = await session.find(Account, user_id)
                goals = await session.find(Goal, user_id)
                data = BackupData(
                    user=user.to_profile(),
                    accounts=accounts,
                    categories=await session.find(Category, user_id),
                    transactions=await session.find(Transaction, user_id),
                    budgets=await session.find(Budget, user_id),
                    goals=[
                        SnapshotGoal(
                            **goal.model_dump(),
                            linked_accounts=[a for a in accounts if a.goal_id == goal.id],
                        )
                        for goal in goals
                    ],
                    debts=await session.find(Debt, user_id),
                    planned_expenses=await session.find(PlannedExpense, user_id),
                )

        snapshot = BackupSnapshot(
            version=BACKUP_VERSION,
            timestamp=datetime.now(timezone.utc),
            data=data,
        )
        self._logger.info("backup_exported", user_id=user_id, **data.entity_counts())
        return snapshot

    async def restore_data(self, user_id: int, raw: Any) -> None:
        """
        Replace the user's data with the snapshot's.

        Args:
            user_id: Restoring user; every record is re-parented to it
            raw: Decoded JSON snapshot

        Raises:
            InvalidOperationError: Bad shape, unsupported version, malformed
                records or references that do not resolve (nothing changes)
            InternalError: Store failure (nothing changes)
        """
        data = parse_snapshot(raw, user_id)

        problems = unresolved_references(data)
        if problems:
            raise InvalidOperationError(INVALID_FORMAT, {"unresolved": problems})

        with storage_errors("restore_data"):
            try:
                async with self._store.transaction() as session:
                    await self._clear(session, user_id)
                    await self._insert(session, user_id, data)
                    await session.reset_id_sequences()
            except IntegrityViolationError as e:
                self._logger.warning("backup_restore_rejected", user_id=user_id, error=str(e))
                raise InvalidOperationError(INVALID_FORMAT) from e

        self._logger.info("backup_restored", user_id=user_id, **data.entity_counts())

    async def _clear(self, session: StoreSession, user_id: int) -> None:
        await session.delete_all(Transaction, user_id)
        await session.delete_all(Budget, user_id)
        await session.delete_all(Debt, user_id)
        await session.update_all(Account, user_id, goal_id=None)
        await session.delete_all(Goal, user_id)
        await session.delete_all(Account, user_id)
        await session.delete_all(PlannedExpense, user_id)
        await session.delete_all(Category, user_id)

    async def _insert(self, session: StoreSession, user_id: int, data: BackupData) -> None:
        for category in data.categories:
            await session.insert(category)

        for account in data.accounts:
            await session.insert(account.model_copy(update={"goal_id": None}))

        for goal in data.goals:
            await session.insert(Goal(**goal.model_dump(exclude={"linked_accounts"})))

        for account in data.accounts:
            if account.goal_id is not None:
                fields: dict[str, Any] = {"goal_id": account.goal_id}
                if account.updated_at is not None:
                    fields["updated_at"] = account.updated_at
                await session.update(Account, account.id, user_id, **fields)

        for debt in data.debts:
            await session.insert(debt)
        for budget in data.budgets:
            await session.insert(budget)
        for transaction in data.transactions:
            await session.insert(transaction)
        for planned in data.planned_expenses:
            await session.insert(planned)
