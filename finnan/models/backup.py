"""
Backup Snapshot Models

A snapshot is the full per-user entity graph in one versioned object:

    {version: 1, timestamp: <ISO8601>, data: {user, accounts[], categories[],
     transactions[], budgets[], goals[], debts[], plannedExpenses[]}}

Records keep their original ids so cross-references inside the snapshot
stay valid after a restore.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from finnan.models.entities import (
    Account,
    Budget,
    Category,
    Debt,
    Goal,
    LedgerModel,
    PlannedExpense,
    Transaction,
    UserProfile,
)


BACKUP_VERSION = 1


class SnapshotGoal(Goal):
    """A goal together with the accounts earmarked for it."""

    linked_accounts: list[Account] = Field(default_factory=list)


class BackupData(LedgerModel):
    user: Optional[UserProfile] = None
    accounts: list[Account] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    goals: list[SnapshotGoal] = Field(default_factory=list)
    debts: list[Debt] = Field(default_factory=list)
    planned_expenses: list[PlannedExpense] = Field(default_factory=list)

    def entity_counts(self) -> dict[str, int]:
        return {
            "accounts": len(self.accounts),
            "categories": len(self.categories),
            "transactions": len(self.transactions),
            "budgets": len(self.budgets),
            "goals": len(self.goals),
            "debts": len(self.debts),
            "planned_expenses": len(self.planned_expenses),
        }


class BackupSnapshot(LedgerModel):
    version: int = BACKUP_VERSION
    timestamp: datetime
    data: BackupData
