"""Record services: ownership-checked CRUD for the ledger's entities."""

from finnan.records.accounts import AccountService
from finnan.records.base import RecordService, month_bounds
from finnan.records.budgets import BudgetService, budget_progress
from finnan.records.categories import CategoryService
from finnan.records.debts import DebtService
from finnan.records.goals import GoalService, effective_current_amount, goal_view
from finnan.records.planned_expenses import PlannedExpenseService, planned_expense_view

__all__ = [
    "AccountService",
    "BudgetService",
    "CategoryService",
    "DebtService",
    "GoalService",
    "PlannedExpenseService",
    "RecordService",
    "budget_progress",
    "effective_current_amount",
    "goal_view",
    "month_bounds",
    "planned_expense_view",
]
