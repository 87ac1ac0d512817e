"""
Data Models Package

This package contains all Pydantic models used in Finnan.
All data flowing through the system must conform to these schemas.
"""

from finnan.models.entities import (
    Account,
    AccountType,
    Budget,
    BudgetProgress,
    Category,
    CategoryType,
    Currency,
    Debt,
    DebtStatus,
    DebtType,
    Goal,
    GoalStatus,
    GoalView,
    OwnedEntity,
    PlannedExpense,
    PlannedExpenseStatus,
    PlannedExpenseView,
    Quantity,
    Transaction,
    TransactionType,
    TransactionView,
    User,
    UserProfile,
)
from finnan.models.payloads import (
    AccountInput,
    BudgetCreate,
    BudgetFilter,
    CategoryInput,
    DebtInput,
    GoalInput,
    LoginRequest,
    PlannedExpenseCreate,
    PlannedExpenseFilter,
    PlannedExpenseUpdate,
    PayloadModel,
    RegisterRequest,
    TransactionCreate,
    TransactionFilter,
)
from finnan.models.dashboard import (
    CashHistoryPoint,
    ChartPoint,
    DashboardStats,
    WealthLevel,
)
from finnan.models.backup import (
    BACKUP_VERSION,
    BackupData,
    BackupSnapshot,
    SnapshotGoal,
)

__all__ = [
    # Entities
    "Account",
    "AccountType",
    "Budget",
    "BudgetProgress",
    "Category",
    "CategoryType",
    "Currency",
    "Debt",
    "DebtStatus",
    "DebtType",
    "Goal",
    "GoalStatus",
    "GoalView",
    "OwnedEntity",
    "PlannedExpense",
    "PlannedExpenseStatus",
    "PlannedExpenseView",
    "Quantity",
    "Transaction",
    "TransactionType",
    "TransactionView",
    "User",
    "UserProfile",
    # Payloads
    "AccountInput",
    "BudgetCreate",
    "BudgetFilter",
    "CategoryInput",
    "DebtInput",
    "GoalInput",
    "LoginRequest",
    "PlannedExpenseCreate",
    "PlannedExpenseFilter",
    "PlannedExpenseUpdate",
    "PayloadModel",
    "RegisterRequest",
    "TransactionCreate",
    "TransactionFilter",
    # Dashboard
    "CashHistoryPoint",
    "ChartPoint",
    "DashboardStats",
    "WealthLevel",
    # Backup
    "BACKUP_VERSION",
    "BackupData",
    "BackupSnapshot",
    "SnapshotGoal",
]
