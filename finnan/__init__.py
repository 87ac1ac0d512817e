"""
Finnan - Personal Finance Bookkeeping

Tracks accounts, categories, transactions, budgets, goals, debts and
planned expenses for individual users, and derives a dashboard summary.

CORE RULES:
1. Balances are maintained incrementally by the ledger engine
2. Every transaction side effect has an exact reversal on delete
3. Every read and write is scoped to the authenticated user
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finnan Team"
